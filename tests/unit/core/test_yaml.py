"""
Unit tests for core.yaml module.

Tests:
- load_yaml() - YAML configuration file loading
  - Valid YAML files and nested mappings
  - Empty files
  - File not found
  - Invalid YAML syntax and non-mapping documents
  - Safe loading (no arbitrary object construction)
"""

from pathlib import Path

import pytest

from nostrpool.core.exceptions import ConfigurationError
from nostrpool.core.yaml import load_yaml


class TestLoadYamlValid:
    """load_yaml() with valid files."""

    def test_nested(self, tmp_path: Path):
        yaml_file = tmp_path / "pool.yaml"
        yaml_file.write_text("query_timeout: 5\nconnection:\n  reconnect:\n    enabled: true\n")

        result = load_yaml(yaml_file)
        assert result == {"query_timeout": 5, "connection": {"reconnect": {"enabled": True}}}

    def test_str_path(self, tmp_path: Path):
        yaml_file = tmp_path / "pool.yaml"
        yaml_file.write_text("key: value\n")
        assert load_yaml(str(yaml_file)) == {"key": "value"}

    def test_empty_file(self, tmp_path: Path):
        yaml_file = tmp_path / "empty.yaml"
        yaml_file.write_text("")
        assert load_yaml(yaml_file) == {}


class TestLoadYamlErrors:
    """load_yaml() failure modes."""

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_yaml(tmp_path / "missing.yaml")

    def test_invalid_syntax(self, tmp_path: Path):
        yaml_file = tmp_path / "bad.yaml"
        yaml_file.write_text("key: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_yaml(yaml_file)

    def test_top_level_list(self, tmp_path: Path):
        yaml_file = tmp_path / "list.yaml"
        yaml_file.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="must contain a mapping"):
            load_yaml(yaml_file)

    def test_python_tags_rejected(self, tmp_path: Path):
        yaml_file = tmp_path / "unsafe.yaml"
        yaml_file.write_text("cmd: !!python/object/apply:os.system ['true']\n")
        with pytest.raises(ConfigurationError):
            load_yaml(yaml_file)
