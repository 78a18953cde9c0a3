"""
Structured logging with key=value and JSON output support.

Wraps the standard library ``logging`` module so that every log call takes
an event name plus keyword fields:

```python
logger = Logger("nostrpool.connection")
logger.info("relay_connected", url="wss://relay.example.com", attempt=2)
# relay_connected url=wss://relay.example.com attempt=2
```

Values containing spaces, equals signs or quotes are escaped and wrapped in
double quotes; long values (relay notices, event content) are truncated.

Nothing here installs handlers: as a library, nostrpool leaves handler and
level configuration to the application. Install
[StructuredFormatter][nostrpool.core.logger.StructuredFormatter] on a handler
to render the structured fields.
"""

from __future__ import annotations

import datetime
import json
import logging
from typing import Any, ClassVar


def format_kv_pairs(
    kwargs: dict[str, Any],
    max_value_length: int | None = 1000,
    prefix: str = " ",
) -> str:
    """Format a dictionary as space-separated key=value pairs.

    Args:
        kwargs: Key-value pairs to format.
        max_value_length: Maximum characters per value before truncation.
            Pass None to disable truncation.
        prefix: String prepended to the output (default: single space).

    Returns:
        Formatted string, e.g. ``' key1=value1 key2="value with spaces"'``,
        or an empty string if *kwargs* is empty.
    """
    if not kwargs:
        return ""

    parts = []
    for k, v in kwargs.items():
        s = _truncate(str(v), max_value_length)
        if not s or " " in s or "=" in s or '"' in s or "'" in s:
            escaped = s.replace("\\", "\\\\").replace('"', '\\"')
            parts.append(f'{k}="{escaped}"')
        else:
            parts.append(f"{k}={s}")

    return prefix + " ".join(parts)


def _truncate(s: str, max_value_length: int | None) -> str:
    if max_value_length and len(s) > max_value_length:
        return s[:max_value_length] + f"...<truncated {len(s) - max_value_length} chars>"
    return s


class StructuredFormatter(logging.Formatter):
    """Render log records as ``level logger message key=value ...``.

    Reads the ``structured_kv`` extra attached by
    [Logger][nostrpool.core.logger.Logger]. Records from plain
    ``logging.getLogger()`` calls are emitted with the same prefix.
    """

    def format(self, record: logging.LogRecord) -> str:
        base = f"{record.levelname.lower()} {record.name} {record.getMessage()}"
        extra: dict[str, Any] = getattr(record, "structured_kv", {})
        if extra:
            base += format_kv_pairs(extra)
        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)
        return base


class Logger:
    """Structured logger that appends keyword arguments as extra fields.

    Args:
        name: Name passed to ``logging.getLogger``.
        json_output: Emit one JSON object per record instead of key=value pairs.
        max_value_length: Maximum character length for individual values.
    """

    _DEFAULT_MAX_VALUE_LENGTH: ClassVar[int] = 1000

    def __init__(
        self,
        name: str,
        *,
        json_output: bool = False,
        max_value_length: int | None = None,
    ) -> None:
        if max_value_length is None:
            max_value_length = self._DEFAULT_MAX_VALUE_LENGTH
        self._logger = logging.getLogger(name)
        self._json_output = json_output
        self._max_value_length = max_value_length

    @property
    def name(self) -> str:
        return self._logger.name

    def is_enabled_for(self, level: int) -> bool:
        return self._logger.isEnabledFor(level)

    def _format_json(self, msg: str, level: str, kwargs: dict[str, Any]) -> str:
        record = {
            "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
            "level": level,
            "logger": self._logger.name,
            "message": msg,
            **{k: _truncate(str(v), self._max_value_length) for k, v in kwargs.items()},
        }
        return json.dumps(record, default=str)

    def _log(
        self, level: int, msg: str, kwargs: dict[str, Any], *, exc_info: bool = False
    ) -> None:
        if not self._logger.isEnabledFor(level):
            return
        if self._json_output:
            text = self._format_json(msg, logging.getLevelName(level).lower(), kwargs)
            self._logger.log(level, text, exc_info=exc_info)
            return
        extra = {
            "structured_kv": {
                k: _truncate(str(v), self._max_value_length) for k, v in kwargs.items()
            }
        }
        self._logger.log(level, msg, extra=extra, exc_info=exc_info)

    def debug(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, msg, kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.INFO, msg, kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, msg, kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, msg, kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log at ERROR level with the active exception's traceback."""
        self._log(logging.ERROR, msg, kwargs, exc_info=True)
