"""
A single filtered query registered on one relay connection.

Lifecycle::

    CREATED --REQ sent--> ACTIVE --(EOSE: sticky flag)--> ACTIVE --> CLOSED

``CLOSED`` is terminal and reached by an explicit
[close()][nostrpool.client.subscription.Subscription.close] /
[Connection.unsubscribe()][nostrpool.client.connection.Connection.unsubscribe],
a relay ``CLOSED`` frame, or the connection closing. A closed subscription
cannot be reopened; create a new one with the same filters instead.

Listeners are registered per slot and may be added at any time:

* ``on_event(event)`` -- every validated, matching event, in arrival order
* ``on_eose()`` -- end of stored events, at most once per REQ cycle
* ``on_closed(reason)`` -- the relay or the connection ended the subscription
  (not fired for explicit unsubscribes)
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from enum import StrEnum
from typing import TYPE_CHECKING

from nostrpool.core.logger import Logger

from ._callbacks import invoke_all


if TYPE_CHECKING:
    from nostrpool.models.event import Event
    from nostrpool.models.filter import Filter


EventCallback = Callable[["Event"], None]
EoseCallback = Callable[[], None]
ClosedCallback = Callable[[str], None]

logger = Logger("nostrpool.subscription")


class SubscriptionState(StrEnum):
    CREATED = "created"
    ACTIVE = "active"
    CLOSED = "closed"


class Subscription:
    """Handle for one ``REQ`` on one connection.

    Created by [Connection.subscribe()][nostrpool.client.connection.Connection.subscribe];
    not meant to be constructed directly.

    Attributes:
        id: Subscription id, unique within its connection.
        relay_url: Normalized URL of the owning connection.
        filters: Filters sent with the ``REQ`` (OR-ed together).
    """

    def __init__(
        self,
        sub_id: str,
        relay_url: str,
        filters: Sequence[Filter],
        unsubscribe: Callable[[str], None],
    ) -> None:
        self.id = sub_id
        self.relay_url = relay_url
        self.filters: tuple[Filter, ...] = tuple(filters)
        self._unsubscribe = unsubscribe
        self._state = SubscriptionState.CREATED
        self._eose_received = False
        self._newest_created_at: int | None = None
        self._sent_session: int | None = None
        self._event_listeners: list[EventCallback] = []
        self._eose_listeners: list[EoseCallback] = []
        self._closed_listeners: list[ClosedCallback] = []

    def __repr__(self) -> str:
        return (
            f"Subscription(id={self.id!r}, relay={self.relay_url!r}, "
            f"state={self._state.value}, eose={self._eose_received})"
        )

    @property
    def state(self) -> SubscriptionState:
        return self._state

    @property
    def active(self) -> bool:
        """True until closed locally, by the relay, or by the connection."""
        return self._state is not SubscriptionState.CLOSED

    @property
    def eose_received(self) -> bool:
        return self._eose_received

    def on_event(self, callback: EventCallback) -> EventCallback:
        self._event_listeners.append(callback)
        return callback

    def on_eose(self, callback: EoseCallback) -> EoseCallback:
        self._eose_listeners.append(callback)
        return callback

    def on_closed(self, callback: ClosedCallback) -> ClosedCallback:
        self._closed_listeners.append(callback)
        return callback

    def close(self) -> None:
        """Unsubscribe. Safe to call more than once."""
        if self.active:
            self._unsubscribe(self.id)

    # -- driven by Connection -------------------------------------------------

    def _request_filters(self, *, resume: bool) -> tuple[Filter, ...]:
        """Filters for the next ``REQ``; advanced past delivered events if *resume*."""
        if not resume or self._newest_created_at is None:
            return self.filters
        return tuple(f.with_since(self._newest_created_at) for f in self.filters)

    def _mark_sent(self, session: int) -> None:
        if not self.active:
            return
        # A fresh REQ restarts the relay's stored-event replay
        self._sent_session = session
        self._eose_received = False
        self._state = SubscriptionState.ACTIVE

    def _deliver(self, event: Event) -> None:
        if not self.active:
            return
        if self._newest_created_at is None or event.created_at > self._newest_created_at:
            self._newest_created_at = event.created_at
        invoke_all(
            self._event_listeners, event, logger=logger, slot="event", sub_id=self.id
        )

    def _mark_eose(self) -> None:
        if not self.active or self._eose_received:
            return
        self._eose_received = True
        invoke_all(self._eose_listeners, logger=logger, slot="eose", sub_id=self.id)

    def _deactivate(self) -> None:
        self._state = SubscriptionState.CLOSED

    def _mark_closed(self, reason: str) -> None:
        if not self.active:
            return
        self._state = SubscriptionState.CLOSED
        invoke_all(
            self._closed_listeners, reason, logger=logger, slot="closed", sub_id=self.id
        )
