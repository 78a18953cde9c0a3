"""
Outcome tracking for one event published to one relay.

State machine::

    PENDING --OK true-->          ACCEPTED
            --OK false-->         REJECTED (message = relay reason)
            --deadline-->         TIMED_OUT
            --connection lost-->  INDETERMINATE (sent, outcome unknown)
            --never sent-->       FAILED (connect or send failed)

All states but ``PENDING`` are terminal. ``seen`` is orthogonal: it is set
when the same event id comes back through any active subscription on the
same connection, before or after the acknowledgment (some relays relay an
event back without ever sending ``OK``).

``INDETERMINATE`` is distinct from ``REJECTED`` and
``FAILED``: the relay may well have stored the event. Publishing is not
assumed idempotent, so indeterminate publishes are never resent
automatically.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import StrEnum

from nostrpool.core.logger import Logger

from ._callbacks import invoke_all


logger = Logger("nostrpool.publish")


class PublishStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    TIMED_OUT = "timed_out"
    INDETERMINATE = "indeterminate"
    FAILED = "failed"


TrackerCallback = Callable[["PublishTracker"], None]


class PublishTracker:
    """Handle reporting the outcome of one publish on one relay.

    Examples:
        ```python
        tracker = connection.publish(event)
        status = await tracker.wait()
        if status is PublishStatus.REJECTED:
            print(tracker.relay_url, tracker.message)
        ```

    Listener slots:
        ``on_ok(tracker)`` fires on ``ACCEPTED``; ``on_failed(tracker)`` on
        every other terminal state; ``on_seen(tracker)`` once, when the event
        is observed coming back from the relay.
    """

    def __init__(self, event_id: str, relay_url: str) -> None:
        self.event_id = event_id
        self.relay_url = relay_url
        self._status = PublishStatus.PENDING
        self._message = ""
        self._seen = False
        self._sent = False
        self._done = asyncio.Event()
        self._timer: asyncio.TimerHandle | None = None
        self._ok_listeners: list[TrackerCallback] = []
        self._failed_listeners: list[TrackerCallback] = []
        self._seen_listeners: list[TrackerCallback] = []
        self._expiry_hooks: list[TrackerCallback] = []

    def __repr__(self) -> str:
        return (
            f"PublishTracker(event_id={self.event_id[:16]!r}, relay={self.relay_url!r}, "
            f"status={self._status.value}, seen={self._seen})"
        )

    @property
    def status(self) -> PublishStatus:
        return self._status

    @property
    def message(self) -> str:
        """Relay-supplied reason (``OK`` message) or local failure description."""
        return self._message

    @property
    def seen(self) -> bool:
        return self._seen

    @property
    def done(self) -> bool:
        return self._status is not PublishStatus.PENDING

    @property
    def has_deadline(self) -> bool:
        return self._timer is not None

    async def wait(self) -> PublishStatus:
        """Suspend until the tracker reaches a terminal state."""
        await self._done.wait()
        return self._status

    def on_ok(self, callback: TrackerCallback) -> TrackerCallback:
        self._ok_listeners.append(callback)
        return callback

    def on_failed(self, callback: TrackerCallback) -> TrackerCallback:
        self._failed_listeners.append(callback)
        return callback

    def on_seen(self, callback: TrackerCallback) -> TrackerCallback:
        self._seen_listeners.append(callback)
        return callback

    # -- driven by Connection / Pool -----------------------------------------

    def _arm(self, timeout: float | None) -> None:
        """Start the deadline; must run inside the event loop."""
        if timeout is None or self._timer is not None:
            return
        self._timer = asyncio.get_running_loop().call_later(timeout, self._expire)

    def _add_expiry_hook(self, hook: TrackerCallback) -> None:
        self._expiry_hooks.append(hook)

    def _expire(self) -> None:
        if not self.done:
            self._resolve(PublishStatus.TIMED_OUT, "no acknowledgment before deadline")
        for hook in self._expiry_hooks:
            hook(self)
        self._expiry_hooks.clear()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()

    def _resolve(self, status: PublishStatus, message: str = "") -> None:
        if self.done or status is PublishStatus.PENDING:
            return
        self._status = status
        self._message = message
        self._done.set()
        logger.debug(
            "publish_resolved",
            relay=self.relay_url,
            event_id=self.event_id,
            status=status.value,
            reason=message,
        )
        if status is PublishStatus.ACCEPTED:
            invoke_all(self._ok_listeners, self, logger=logger, slot="ok", event_id=self.event_id)
        else:
            invoke_all(
                self._failed_listeners, self, logger=logger, slot="failed", event_id=self.event_id
            )

    def _mark_seen(self) -> None:
        if self._seen:
            return
        self._seen = True
        invoke_all(self._seen_listeners, self, logger=logger, slot="seen", event_id=self.event_id)
