"""Ambient infrastructure shared by every layer above the models.

Attributes:
    Logger: Structured logger supporting key=value and JSON output modes.
        See [Logger][nostrpool.core.logger.Logger].
    exceptions: The nostrpool error taxonomy.
        See [nostrpool.core.exceptions][].
    metrics: Prometheus counters and gauges keyed by relay.
        See [nostrpool.core.metrics][].
    load_yaml: Safe YAML loading for configuration files.
"""

from .exceptions import (
    ConfigurationError,
    ConnectionClosedError,
    EventValidationError,
    NostrPoolError,
    ProtocolError,
    RelayTimeoutError,
    TransportError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs
from .metrics import RELAY_COUNTER, RELAY_GAUGE, inc_counter, set_gauge
from .yaml import load_yaml


__all__ = [
    "RELAY_COUNTER",
    "RELAY_GAUGE",
    "ConfigurationError",
    "ConnectionClosedError",
    "EventValidationError",
    "Logger",
    "NostrPoolError",
    "ProtocolError",
    "RelayTimeoutError",
    "StructuredFormatter",
    "TransportError",
    "format_kv_pairs",
    "inc_counter",
    "load_yaml",
    "set_gauge",
]
