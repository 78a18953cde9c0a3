"""YAML configuration loading.

Uses ``yaml.safe_load`` so untrusted configuration files cannot instantiate
arbitrary Python objects. Consumed by
[Pool.from_yaml()][nostrpool.client.pool.Pool.from_yaml].

Examples:
    ```yaml
    # pool.yaml
    query_timeout: 5
    connection:
      connect_timeout: 8
      reconnect:
        enabled: true
        max_attempts: 10
    ```

    ```python
    pool = Pool.from_yaml("pool.yaml")
    ```
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError


def load_yaml(config_path: str | Path) -> dict[str, Any]:
    """Load and parse a YAML configuration file.

    Args:
        config_path: Path to the YAML file (absolute or relative).

    Returns:
        Parsed configuration as a dictionary; an empty dict if the file is empty.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the file is not valid YAML or its top level
            is not a mapping.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with path.open(encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")
    return data
