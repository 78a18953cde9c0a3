"""
One relay's transport session and its protocol state machine.

States::

    DISCONNECTED --connect()--> CONNECTING --handshake ok--> OPEN
         ^                          |                          |
         +------ handshake failed --+    socket error / close() / relay close
                                                               v
                                                            CLOSED

While the session is open a [Connection][nostrpool.client.connection.Connection]
owns the ``sub_id -> Subscription`` and ``event_id -> PublishTracker`` maps
and routes every incoming frame to them. Everything runs on one asyncio
event loop; callbacks never run concurrently, so the maps need no locking.

Outbound frames go through a per-session queue drained by a writer task, so
frames reach the relay in the order they were issued even though
[subscribe()][nostrpool.client.connection.Connection.subscribe],
[unsubscribe()][nostrpool.client.connection.Connection.unsubscribe] and
[publish()][nostrpool.client.connection.Connection.publish] return
immediately. Local state never waits for the relay: an unsubscribe or close
is complete as soon as the call returns.

Reconnection (off by default, see
[ReconnectConfig][nostrpool.client.connection.ReconnectConfig]) retries with
bounded backoff after an unexpected drop. Active subscriptions are re-sent as
fresh ``REQ`` frames on success (their EOSE flag resets, since the relay
restarts its stored-event replay, and already-seen events may be delivered
again). Publishes still pending at the drop become ``INDETERMINATE``; they are
never resent.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
from collections.abc import Callable, Iterable, Mapping
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from nostrpool.core.exceptions import (
    ConnectionClosedError,
    EventValidationError,
    ProtocolError,
    RelayTimeoutError,
    TransportError,
)
from nostrpool.core.logger import Logger
from nostrpool.core.metrics import inc_counter, set_gauge
from nostrpool.models.constants import NetworkType
from nostrpool.models.event import Event
from nostrpool.models.filter import Filter, coerce_filters, match_filters
from nostrpool.models.relay import RelayUrl
from nostrpool.utils.codec import EventCodec
from nostrpool.utils.transport import Transport, TransportFactory, WebSocketTransport

from ._callbacks import invoke_all
from .messages import (
    RelayAuth,
    RelayClosed,
    RelayCount,
    RelayEose,
    RelayEvent,
    RelayNotice,
    RelayOk,
    decode_relay_message,
    encode_auth,
    encode_close,
    encode_count,
    encode_event,
    encode_req,
)
from .publish import PublishStatus, PublishTracker
from .subscription import ClosedCallback, EoseCallback, EventCallback, Subscription


logger = Logger("nostrpool.connection")

CONNECTION_CLOSED_REASON = "connection closed"
_FRAME_LOG_LIMIT = 512

_OVERLAY_NETWORKS = frozenset({NetworkType.TOR, NetworkType.I2P, NetworkType.LOKI})


# ---------------------------------------------------------------------------
# Configuration Models
# ---------------------------------------------------------------------------


class ReconnectConfig(BaseModel):
    """Automatic reconnection after an unexpected drop.

    Note:
        Exponential backoff (the default) doubles the delay each attempt:
        ``initial_delay * 2^attempt``, capped at ``max_delay``. Linear backoff
        grows as ``initial_delay * (attempt + 1)``.

        ``resume_since`` advances each re-sent filter's ``since`` to the
        newest ``created_at`` already delivered on that subscription. Off by
        default: restarting from the original filters may re-deliver events,
        while resuming may miss events the relay stores late.
    """

    enabled: bool = Field(default=False, description="Reconnect after unexpected drops")
    max_attempts: int = Field(default=5, ge=1, le=100, description="Attempts per drop")
    initial_delay: float = Field(default=1.0, ge=0.0, description="First backoff delay")
    max_delay: float = Field(default=30.0, ge=0.0, description="Backoff ceiling")
    exponential_backoff: bool = Field(default=True, description="Use exponential backoff")
    resume_since: bool = Field(default=False, description="Advance since on resend")

    @field_validator("max_delay")
    @classmethod
    def validate_max_delay(cls, v: float, info: ValidationInfo) -> float:
        """Ensure max_delay >= initial_delay."""
        initial_delay = info.data.get("initial_delay", 1.0)
        if v < initial_delay:
            raise ValueError(f"max_delay ({v}) must be >= initial_delay ({initial_delay})")
        return v

    def delay_for(self, attempt: int) -> float:
        """Backoff before the zero-based *attempt*."""
        if self.exponential_backoff:
            delay = self.initial_delay * (2**attempt)
        else:
            delay = self.initial_delay * (attempt + 1)
        return min(delay, self.max_delay)


class ConnectionConfig(BaseModel):
    """Per-relay connection settings.

    ``proxy_url`` only applies to overlay relays (``.onion``, ``.i2p``,
    ``.loki``); clearnet and local relays are always dialed directly.

    Warning:
        ``allow_insecure`` disables TLS certificate verification and
        ``skip_verification`` trusts relay-supplied event ids and signatures.
        Both are meant for known relays only.
    """

    connect_timeout: float = Field(default=10.0, gt=0.0, description="Handshake timeout")
    close_timeout: float = Field(default=5.0, gt=0.0, description="Graceful close timeout")
    publish_timeout: float | None = Field(
        default=10.0, gt=0.0, description="Default publish deadline (None = no deadline)"
    )
    max_message_size: int = Field(default=4 * 1024 * 1024, ge=1024, description="Max frame")
    heartbeat: float | None = Field(default=30.0, gt=0.0, description="Ping interval")
    proxy_url: str | None = Field(default=None, description="SOCKS5 proxy for overlay relays")
    allow_insecure: bool = Field(default=False, description="Skip TLS verification")
    skip_verification: bool = Field(default=False, description="Trust relay event signatures")
    reconnect: ReconnectConfig = Field(default_factory=ReconnectConfig)


def default_transport_factory(config: ConnectionConfig) -> TransportFactory:
    """Return a factory building WebSocket transports from *config*."""

    def factory(url: str) -> Transport:
        overlay = RelayUrl(url).network in _OVERLAY_NETWORKS
        return WebSocketTransport(
            url,
            connect_timeout=config.connect_timeout,
            close_timeout=config.close_timeout,
            max_message_size=config.max_message_size,
            heartbeat=config.heartbeat,
            proxy_url=config.proxy_url if overlay else None,
            allow_insecure=config.allow_insecure,
        )

    return factory


# ---------------------------------------------------------------------------
# Connection Class
# ---------------------------------------------------------------------------


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


NoticeCallback = Callable[[str], None]
StateCallback = Callable[[], None]


class Connection:
    """Transport session to a single relay.

    Examples:
        ```python
        conn = Connection("wss://relay.example.com")
        await conn.connect()

        sub = conn.subscribe([Filter(kinds={1}, limit=20)], on_event=print)
        sub.on_eose(lambda: print("caught up"))

        tracker = conn.publish(event)
        print(await tracker.wait())

        await conn.close()
        ```

    Args:
        url: Relay URL; normalized on construction.
        config: Connection settings. Defaults apply when omitted.
        codec: Event codec used to validate inbound events.
        transport_factory: Builds the transport for each session (tests
            inject an in-memory transport here).

    Raises:
        ValueError: If *url* is not a valid relay URL.
    """

    def __init__(
        self,
        url: str,
        config: ConnectionConfig | None = None,
        *,
        codec: EventCodec | None = None,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        self._url = RelayUrl(url).url
        self._config = config or ConnectionConfig()
        self._codec = codec or EventCodec(skip_verification=self._config.skip_verification)
        self._transport_factory = transport_factory or default_transport_factory(self._config)

        self._state = ConnectionState.DISCONNECTED
        self._transport: Transport | None = None
        self._session = 0
        self._outbox: asyncio.Queue[tuple[str, str | None]] | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._writer_task: asyncio.Task[None] | None = None
        self._connect_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None

        self._ids = itertools.count(1)
        self._subscriptions: dict[str, Subscription] = {}
        self._publishes: dict[str, PublishTracker] = {}
        self._unsent: dict[str, str] = {}
        self._counts: dict[str, asyncio.Future[int | None]] = {}

        self._notice_listeners: list[NoticeCallback] = []
        self._auth_listeners: list[NoticeCallback] = []
        self._connect_listeners: list[StateCallback] = []
        self._disconnect_listeners: list[StateCallback] = []

    def __repr__(self) -> str:
        return f"Connection(url={self._url!r}, state={self._state.value})"

    # -------------------------------------------------------------------------
    # Properties and listener slots
    # -------------------------------------------------------------------------

    @property
    def url(self) -> str:
        return self._url

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is ConnectionState.OPEN

    @property
    def subscriptions(self) -> Mapping[str, Subscription]:
        """Read-only view of the active subscriptions by id."""
        return MappingProxyType(self._subscriptions)

    @property
    def pending_publishes(self) -> Mapping[str, PublishTracker]:
        """Read-only view of the registered publish trackers by event id."""
        return MappingProxyType(self._publishes)

    def on_notice(self, callback: NoticeCallback) -> NoticeCallback:
        self._notice_listeners.append(callback)
        return callback

    def on_auth(self, callback: NoticeCallback) -> NoticeCallback:
        """Register a listener for NIP-42 ``AUTH`` challenges."""
        self._auth_listeners.append(callback)
        return callback

    def on_connect(self, callback: StateCallback) -> StateCallback:
        self._connect_listeners.append(callback)
        return callback

    def on_disconnect(self, callback: StateCallback) -> StateCallback:
        self._disconnect_listeners.append(callback)
        return callback

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the session. No-op when already open.

        Concurrent callers share a single attempt. A pending automatic
        reconnect is superseded by an explicit call.

        Raises:
            RelayTimeoutError: If the handshake exceeds ``connect_timeout``.
            TransportError: If the relay cannot be reached.
        """
        if self._state is ConnectionState.OPEN:
            return
        if self._connect_task is None or self._connect_task.done():
            self._cancel_reconnect()
            self._connect_task = asyncio.create_task(self._open())
        task = self._connect_task
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled() and self._state is ConnectionState.CLOSED:
                raise ConnectionClosedError(
                    f"Connection closed while connecting: {self._url}"
                ) from None
            raise

    async def _open(self) -> None:
        previous = self._state
        self._state = ConnectionState.CONNECTING
        transport = self._transport_factory(self._url)
        logger.debug("relay_connecting", url=self._url)

        try:
            async with asyncio.timeout(self._config.connect_timeout):
                await transport.connect()
        except TimeoutError:
            await transport.close()
            self._connect_failed(previous)
            raise RelayTimeoutError(f"Connection timeout: {self._url}") from None
        except TransportError:
            await transport.close()
            self._connect_failed(previous)
            raise
        except asyncio.CancelledError:
            await transport.close()
            self._connect_failed(previous)
            raise

        if self._state is not ConnectionState.CONNECTING:
            # close() ran while the handshake was in flight
            await transport.close()
            raise ConnectionClosedError(f"Connection closed while connecting: {self._url}")

        self._transport = transport
        self._session += 1
        self._state = ConnectionState.OPEN
        self._outbox = asyncio.Queue()
        self._writer_task = asyncio.create_task(self._write_loop(transport, self._outbox))
        self._reader_task = asyncio.create_task(self._read_loop(transport, self._session))

        resume = self._config.reconnect.resume_since
        for sub in list(self._subscriptions.values()):
            if sub.active:
                self._send_req(sub, resume=resume)
        for event_id, frame in list(self._unsent.items()):
            self._flush_publish(event_id, frame)

        logger.info("relay_connected", url=self._url, session=self._session)
        set_gauge(self._url, "open", 1)
        invoke_all(self._connect_listeners, logger=logger, slot="connect", url=self._url)

    def _connect_failed(self, previous: ConnectionState) -> None:
        inc_counter(self._url, "connect_failures")
        if self._state is ConnectionState.CONNECTING:
            self._state = (
                ConnectionState.CLOSED
                if previous is ConnectionState.CLOSED
                else ConnectionState.DISCONNECTED
            )

    async def close(self) -> None:
        """Close the session and release every subscription and tracker.

        Local state is settled before the transport teardown is awaited:
        subscriptions become inactive (``on_closed`` fires with
        ``"connection closed"``), sent-but-unacknowledged trackers become
        ``INDETERMINATE`` and unsent ones ``FAILED``. Idempotent.
        """
        self._state = ConnectionState.CLOSED
        self._session += 1
        self._cancel_reconnect()
        if self._connect_task is not None and not self._connect_task.done():
            self._connect_task.cancel()

        self._settle_pending(final=True)

        transport = self._transport
        self._transport = None
        await self._stop_session_tasks()
        if transport is not None:
            await transport.close()
            logger.info("relay_closed", url=self._url)
        set_gauge(self._url, "open", 0)

    async def _stop_session_tasks(self) -> None:
        tasks = [t for t in (self._writer_task, self._reader_task) if t is not None]
        self._writer_task = None
        self._reader_task = None
        self._outbox = None
        current = asyncio.current_task()
        for task in tasks:
            if task is not current:
                task.cancel()
        for task in tasks:
            if task is not current:
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    def _settle_pending(self, *, final: bool) -> None:
        """Resolve state tied to the dead session.

        Sent publishes become ``INDETERMINATE`` in every case. When *final*,
        subscriptions close, unsent publishes fail and pending counts
        resolve to None; otherwise they wait for the next session.
        """
        for event_id, tracker in list(self._publishes.items()):
            if event_id in self._unsent and not final:
                continue
            self._publishes.pop(event_id, None)
            tracker._cancel_timer()
            if event_id in self._unsent:
                tracker._resolve(PublishStatus.FAILED, CONNECTION_CLOSED_REASON)
            else:
                tracker._resolve(PublishStatus.INDETERMINATE, CONNECTION_CLOSED_REASON)

        for future in self._counts.values():
            if not future.done():
                future.set_result(None)
        self._counts.clear()

        if final:
            self._unsent.clear()
            subs = list(self._subscriptions.values())
            self._subscriptions.clear()
            for sub in subs:
                sub._mark_closed(CONNECTION_CLOSED_REASON)
            set_gauge(self._url, "subscriptions", 0)
        set_gauge(self._url, "pending_publishes", len(self._publishes))

    def _connection_lost(self, session: int) -> None:
        """Handle the end of a session that was not closed locally."""
        if session != self._session or self._state is not ConnectionState.OPEN:
            return

        reconnect = self._config.reconnect.enabled
        logger.warning("relay_disconnected", url=self._url, reconnect=reconnect)
        set_gauge(self._url, "open", 0)

        self._state = ConnectionState.DISCONNECTED
        self._session += 1
        transport = self._transport
        self._transport = None
        if transport is not None:
            task = asyncio.create_task(transport.close())
            task.add_done_callback(_drain_task)
        if self._writer_task is not None:
            self._writer_task.cancel()
        self._writer_task = None
        self._reader_task = None
        self._outbox = None

        self._settle_pending(final=not reconnect)
        invoke_all(self._disconnect_listeners, logger=logger, slot="disconnect", url=self._url)

        if reconnect:
            self._reconnect_task = asyncio.create_task(self._reconnect())
        else:
            self._state = ConnectionState.CLOSED

    async def _reconnect(self) -> None:
        retry = self._config.reconnect
        for attempt in range(retry.max_attempts):
            delay = retry.delay_for(attempt)
            logger.info("reconnect_scheduled", url=self._url, attempt=attempt + 1, delay=delay)
            await asyncio.sleep(delay)
            if self._state is not ConnectionState.DISCONNECTED:
                return
            try:
                await self._open()
            except TransportError as e:
                logger.warning(
                    "reconnect_failed", url=self._url, attempt=attempt + 1, error=str(e)
                )
                continue
            inc_counter(self._url, "reconnects")
            return

        logger.warning("reconnect_exhausted", url=self._url, attempts=retry.max_attempts)
        self._state = ConnectionState.CLOSED
        self._settle_pending(final=True)

    def _cancel_reconnect(self) -> None:
        task = self._reconnect_task
        self._reconnect_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    # -------------------------------------------------------------------------
    # I/O loops
    # -------------------------------------------------------------------------

    async def _write_loop(
        self, transport: Transport, outbox: asyncio.Queue[tuple[str, str | None]]
    ) -> None:
        while True:
            frame, event_id = await outbox.get()
            try:
                await transport.send(frame)
            except TransportError as e:
                logger.warning("send_failed", url=self._url, error=str(e))
                tracker = self._publishes.get(event_id) if event_id is not None else None
                if tracker is not None:
                    tracker._resolve(PublishStatus.FAILED, f"send failed: {e}")
                    self._drop_tracker(tracker)
                # The reader observes the closed socket and runs _connection_lost
                await transport.close()
                return

    async def _read_loop(self, transport: Transport, session: int) -> None:
        try:
            while True:
                text = await transport.receive()
                if text is None:
                    break
                self._handle_message(text)
        except (TransportError, OSError) as e:
            logger.warning("receive_failed", url=self._url, error=str(e))
        finally:
            self._connection_lost(session)

    def _enqueue(self, frame: str, event_id: str | None = None) -> None:
        if self._outbox is not None:
            self._outbox.put_nowait((frame, event_id))

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def _check_not_closed(self) -> None:
        if self._state is ConnectionState.CLOSED:
            raise ConnectionClosedError(f"Connection is closed: {self._url}")

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}:{next(self._ids)}"

    def subscribe(
        self,
        filters: Filter | Mapping[str, Any] | Iterable[Filter | Mapping[str, Any]],
        *,
        on_event: EventCallback | None = None,
        on_eose: EoseCallback | None = None,
        on_closed: ClosedCallback | None = None,
        sub_id: str | None = None,
    ) -> Subscription:
        """Register a subscription and send its ``REQ``.

        Returns immediately; events and the end-of-stored-events marker arrive
        through the listeners. On a connection that is not open yet the
        ``REQ`` is sent as soon as it opens.

        Raises:
            ConnectionClosedError: If the connection has been closed.
            ValueError: If *filters* is empty or *sub_id* is already in use.
        """
        self._check_not_closed()
        request_filters = coerce_filters(filters)
        if sub_id is None:
            sub_id = self._next_id("sub")
        elif sub_id in self._subscriptions:
            raise ValueError(f"subscription id already in use: {sub_id}")

        sub = Subscription(sub_id, self._url, request_filters, self.unsubscribe)
        if on_event is not None:
            sub.on_event(on_event)
        if on_eose is not None:
            sub.on_eose(on_eose)
        if on_closed is not None:
            sub.on_closed(on_closed)

        self._subscriptions[sub_id] = sub
        set_gauge(self._url, "subscriptions", len(self._subscriptions))
        if self._state is ConnectionState.OPEN:
            self._send_req(sub, resume=False)
        return sub

    def _send_req(self, sub: Subscription, *, resume: bool) -> None:
        sub._mark_sent(self._session)
        self._enqueue(encode_req(sub.id, sub._request_filters(resume=resume)))
        logger.debug("subscription_sent", url=self._url, sub_id=sub.id)

    def unsubscribe(self, sub_id: str) -> None:
        """Close a subscription locally and send ``CLOSE``. Idempotent."""
        sub = self._subscriptions.pop(sub_id, None)
        if sub is None:
            return
        was_sent = sub._sent_session == self._session and self.is_open
        sub._deactivate()
        set_gauge(self._url, "subscriptions", len(self._subscriptions))
        if was_sent:
            self._enqueue(encode_close(sub_id))
        logger.debug("subscription_closed", url=self._url, sub_id=sub_id)

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    def publish(
        self,
        event: Event,
        *,
        timeout: float | None = None,
        tracker: PublishTracker | None = None,
    ) -> PublishTracker:
        """Send ``["EVENT", event]`` and return its tracker immediately.

        Args:
            event: Signed event to publish.
            timeout: Acknowledgment deadline in seconds; defaults to
                ``publish_timeout`` from the config.
            tracker: Existing tracker to resolve (used by the pool, which
                creates trackers before the connection is open).

        Raises:
            ConnectionClosedError: If the connection has been closed.
        """
        return self._track(event, encode_event(event), timeout, tracker)

    def auth(self, event: Event, *, timeout: float | None = None) -> PublishTracker:
        """Answer a NIP-42 challenge with a signed kind 22242 event."""
        return self._track(event, encode_auth(event), timeout, None)

    def _track(
        self,
        event: Event,
        frame: str,
        timeout: float | None,
        tracker: PublishTracker | None,
    ) -> PublishTracker:
        self._check_not_closed()
        if tracker is None:
            tracker = PublishTracker(event.id, self._url)
            tracker._arm(self._config.publish_timeout if timeout is None else timeout)
        if tracker.done:
            return tracker

        previous = self._publishes.get(event.id)
        if previous is not None and previous is not tracker:
            previous._cancel_timer()
            previous._resolve(PublishStatus.INDETERMINATE, "superseded by a new publish")

        self._publishes[event.id] = tracker
        tracker._add_expiry_hook(self._drop_tracker)
        self._unsent[event.id] = frame
        if self._state is ConnectionState.OPEN:
            self._flush_publish(event.id, frame)
        set_gauge(self._url, "pending_publishes", len(self._publishes))
        return tracker

    def _flush_publish(self, event_id: str, frame: str) -> None:
        self._unsent.pop(event_id, None)
        tracker = self._publishes.get(event_id)
        if tracker is None or tracker.done:
            return
        tracker._sent = True
        self._enqueue(frame, event_id)
        logger.debug("event_published", url=self._url, event_id=event_id)

    def _drop_tracker(self, tracker: PublishTracker) -> None:
        if self._publishes.get(tracker.event_id) is tracker:
            del self._publishes[tracker.event_id]
            self._unsent.pop(tracker.event_id, None)
            set_gauge(self._url, "pending_publishes", len(self._publishes))

    # -------------------------------------------------------------------------
    # Counting (NIP-45)
    # -------------------------------------------------------------------------

    async def count(
        self,
        filters: Filter | Mapping[str, Any] | Iterable[Filter | Mapping[str, Any]],
        *,
        timeout: float = 10.0,  # noqa: ASYNC109
    ) -> int | None:
        """Ask the relay how many stored events match *filters*.

        Returns:
            The count, or None if the relay refused (``CLOSED``), did not
            answer within *timeout*, or the connection dropped.

        Raises:
            TransportError: If the connection cannot be opened.
        """
        request_filters = coerce_filters(filters)
        await self.connect()
        sub_id = self._next_id("count")
        future: asyncio.Future[int | None] = asyncio.get_running_loop().create_future()
        self._counts[sub_id] = future
        self._enqueue(encode_count(sub_id, request_filters))
        try:
            async with asyncio.timeout(timeout):
                return await future
        except TimeoutError:
            logger.debug("count_timeout", url=self._url, sub_id=sub_id)
            return None
        finally:
            self._counts.pop(sub_id, None)

    # -------------------------------------------------------------------------
    # Frame dispatch
    # -------------------------------------------------------------------------

    def _handle_message(self, text: str) -> None:
        try:
            message = decode_relay_message(text)
        except ProtocolError as e:
            inc_counter(self._url, "protocol_errors")
            if logger.is_enabled_for(logging.DEBUG):
                logger.debug(
                    "protocol_error", url=self._url, error=str(e), frame=text[:_FRAME_LOG_LIMIT]
                )
            return

        if isinstance(message, RelayEvent):
            self._on_event(message)
        elif isinstance(message, RelayEose):
            sub = self._subscriptions.get(message.sub_id)
            if sub is not None:
                sub._mark_eose()
        elif isinstance(message, RelayOk):
            self._on_ok(message)
        elif isinstance(message, RelayClosed):
            self._on_closed(message)
        elif isinstance(message, RelayNotice):
            inc_counter(self._url, "notices")
            logger.info("relay_notice", url=self._url, message=message.message)
            invoke_all(
                self._notice_listeners, message.message, logger=logger, slot="notice", url=self._url
            )
        elif isinstance(message, RelayAuth):
            logger.debug("relay_auth_challenge", url=self._url)
            invoke_all(
                self._auth_listeners, message.challenge, logger=logger, slot="auth", url=self._url
            )
        elif isinstance(message, RelayCount):
            future = self._counts.get(message.sub_id)
            if future is not None and not future.done():
                future.set_result(message.count)
        elif logger.is_enabled_for(logging.DEBUG):
            logger.debug("unknown_frame_ignored", url=self._url, frame=text[:_FRAME_LOG_LIMIT])

    def _on_event(self, message: RelayEvent) -> None:
        sub = self._subscriptions.get(message.sub_id)
        if sub is None or not sub.active:
            return

        try:
            event = self._codec.validate_structure(message.raw_event)
        except EventValidationError as e:
            inc_counter(self._url, "events_invalid")
            logger.debug("event_malformed", url=self._url, sub_id=sub.id, error=str(e))
            return

        if not match_filters(sub.filters, event):
            inc_counter(self._url, "events_invalid")
            logger.debug("event_unrequested", url=self._url, sub_id=sub.id, event_id=event.id)
            return

        if not self._codec.authenticate(event):
            inc_counter(self._url, "events_invalid")
            logger.debug("event_forged", url=self._url, sub_id=sub.id, event_id=event.id)
            return

        inc_counter(self._url, "events_received")
        tracker = self._publishes.get(event.id)
        if tracker is not None:
            tracker._mark_seen()
        sub._deliver(event)

    def _on_ok(self, message: RelayOk) -> None:
        tracker = self._publishes.get(message.event_id)
        if tracker is None:
            logger.debug("ok_unmatched", url=self._url, event_id=message.event_id)
            return
        status = PublishStatus.ACCEPTED if message.accepted else PublishStatus.REJECTED
        inc_counter(self._url, f"publishes_{status.value}")
        tracker._resolve(status, message.message)
        # Trackers with a deadline stay registered so a later echo still sets ``seen``
        if not tracker.has_deadline:
            self._drop_tracker(tracker)

    def _on_closed(self, message: RelayClosed) -> None:
        future = self._counts.get(message.sub_id)
        if future is not None and not future.done():
            future.set_result(None)

        sub = self._subscriptions.pop(message.sub_id, None)
        if sub is None:
            return
        set_gauge(self._url, "subscriptions", len(self._subscriptions))
        logger.info(
            "subscription_closed_by_relay", url=self._url, sub_id=sub.id, reason=message.message
        )
        sub._mark_closed(message.message)


def _drain_task(task: asyncio.Task[Any]) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.debug("transport_close_failed", error=str(task.exception()))
