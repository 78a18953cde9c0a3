"""Listener invocation shared by subscriptions, trackers and connections.

Private module. Application callbacks run inline on the event loop; one that
raises is logged with its traceback and the remaining listeners still run,
so a buggy callback cannot stall frame dispatch for the whole connection.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from nostrpool.core.logger import Logger


def invoke_all(
    listeners: Iterable[Callable[..., Any]],
    *args: Any,
    logger: Logger,
    slot: str,
    **context: Any,
) -> None:
    """Call every listener with *args*, logging and skipping failures."""
    for callback in list(listeners):
        try:
            callback(*args)
        except Exception:  # noqa: BLE001
            logger.exception("callback_failed", slot=slot, **context)
