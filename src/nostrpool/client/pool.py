"""
Multi-relay coordination: connection registry, fan-out and deduplication.

A [Pool][nostrpool.client.pool.Pool] holds at most one live
[Connection][nostrpool.client.connection.Connection] per normalized relay
URL and fans subscriptions, queries and publishes out to many relays:

* [subscribe_many()][nostrpool.client.pool.Pool.subscribe_many] merges the
  per-relay streams into one
  [AggregatedSubscription][nostrpool.client.pool.AggregatedSubscription]
  that delivers each event id once (first arrival wins) and signals EOSE
  once every relay has finished or failed.
* [query_set()][nostrpool.client.pool.Pool.query_set] and
  [query_one()][nostrpool.client.pool.Pool.query_one] are one-shot queries
  built on top of it; they always unsubscribe before returning.
* [publish_many()][nostrpool.client.pool.Pool.publish_many] returns one
  independent tracker per relay. There is no aggregate verdict: callers
  decide what quorum means.

Every delivery through an aggregate records the relay in the seen-on index
([seen_on()][nostrpool.client.pool.Pool.seen_on]), so provenance covers
duplicates that were suppressed from the callback.

A relay that cannot be reached never fails a multi-relay operation; it is
logged and treated as non-contributing.

Examples:
    ```python
    async with Pool.from_yaml("pool.yaml") as pool:
        events = await pool.query_set(RELAYS, [Filter(kinds={1}, limit=50)])
        for tracker in pool.publish_many(RELAYS, event):
            print(tracker.relay_url, await tracker.wait())
    ```
"""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from collections.abc import Callable, Coroutine, Iterable, Mapping
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from nostrpool.core.exceptions import ConfigurationError, TransportError
from nostrpool.core.logger import Logger
from nostrpool.core.yaml import load_yaml
from nostrpool.models.event import Event
from nostrpool.models.filter import Filter, coerce_filters
from nostrpool.models.relay import normalize_url
from nostrpool.utils.codec import EventCodec
from nostrpool.utils.transport import TransportFactory

from ._callbacks import invoke_all
from .connection import Connection, ConnectionConfig, ConnectionState
from .publish import PublishStatus, PublishTracker


FilterInput = Filter | Mapping[str, Any] | Iterable[Filter | Mapping[str, Any]]

AggregateEventCallback = Callable[[Event], None]
AggregateEoseCallback = Callable[[], None]
AggregateClosedCallback = Callable[[str, str], None]
PoolNoticeCallback = Callable[[str, str], None]


# ---------------------------------------------------------------------------
# Configuration Models
# ---------------------------------------------------------------------------


class PoolConfig(BaseModel):
    """Configuration for a [Pool][nostrpool.client.pool.Pool].

    ``seen_on_max_entries`` bounds the seen-on index with least-recently-used
    eviction. Unbounded by default, so provenance is never silently lost.
    """

    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    query_timeout: float = Field(default=10.0, gt=0.0, description="Default query deadline")
    seen_on_max_entries: int | None = Field(
        default=None, ge=1, description="LRU bound for the seen-on index (None = unbounded)"
    )
    json_logs: bool = Field(default=False, description="Emit pool logs as JSON")


# ---------------------------------------------------------------------------
# Aggregated Subscription
# ---------------------------------------------------------------------------


class AggregatedSubscription:
    """One logical subscription spanning several relays.

    Returned by [Pool.subscribe_many()][nostrpool.client.pool.Pool.subscribe_many].
    Constituent subscriptions are referenced by ``(relay url, sub id)`` and
    looked up through the pool on close, so the aggregate never keeps a
    connection alive on its own.

    Listener slots:
        ``on_event(event)`` once per event id; ``on_eose()`` once, after every
        relay reached EOSE, failed or closed; ``on_closed(url, reason)`` each
        time a relay ends its constituent subscription.
    """

    def __init__(self, pool: Pool, relays: Iterable[str], filters: tuple[Filter, ...]) -> None:
        self._pool = pool
        self.relays: tuple[str, ...] = tuple(relays)
        self.filters = filters
        self._sub_ids: dict[str, str] = {}
        self._pending: set[str] = set(self.relays)
        self._delivered: set[str] = set()
        self._closed = False
        self._eose_fired = False
        self._event_listeners: list[AggregateEventCallback] = []
        self._eose_listeners: list[AggregateEoseCallback] = []
        self._closed_listeners: list[AggregateClosedCallback] = []

    def __repr__(self) -> str:
        return (
            f"AggregatedSubscription(relays={len(self.relays)}, pending={len(self._pending)}, "
            f"delivered={len(self._delivered)}, active={self.active})"
        )

    @property
    def active(self) -> bool:
        return not self._closed

    @property
    def eose_received(self) -> bool:
        return self._eose_fired

    @property
    def sub_ids(self) -> Mapping[str, str]:
        """Constituent subscription id per relay, for relays already subscribed."""
        return MappingProxyType(self._sub_ids)

    def on_event(self, callback: AggregateEventCallback) -> AggregateEventCallback:
        self._event_listeners.append(callback)
        return callback

    def on_eose(self, callback: AggregateEoseCallback) -> AggregateEoseCallback:
        self._eose_listeners.append(callback)
        return callback

    def on_closed(self, callback: AggregateClosedCallback) -> AggregateClosedCallback:
        self._closed_listeners.append(callback)
        return callback

    def close(self) -> None:
        """Unsubscribe from every relay, including ones still connecting."""
        if self._closed:
            return
        self._closed = True
        for url, sub_id in self._sub_ids.items():
            conn = self._pool.get_connection(url)
            if conn is not None:
                conn.unsubscribe(sub_id)
        self._sub_ids.clear()
        self._pending.clear()

    # -- driven by Pool ------------------------------------------------------

    def _attach(self, url: str, sub_id: str) -> None:
        self._sub_ids[url] = sub_id

    def _handle_event(self, url: str, event: Event) -> None:
        if self._closed:
            return
        self._pool._record_seen(event.id, url)
        if event.id in self._delivered:
            return
        self._delivered.add(event.id)
        invoke_all(self._event_listeners, event, logger=self._pool._logger, slot="event", url=url)

    def _relay_done(self, url: str) -> None:
        self._pending.discard(url)
        self._check_complete()

    def _relay_closed(self, url: str, reason: str) -> None:
        if self._closed:
            return
        self._sub_ids.pop(url, None)
        invoke_all(
            self._closed_listeners, url, reason, logger=self._pool._logger, slot="closed", url=url
        )
        self._relay_done(url)

    def _check_complete(self) -> None:
        if self._closed or self._eose_fired or self._pending:
            return
        self._eose_fired = True
        invoke_all(self._eose_listeners, logger=self._pool._logger, slot="eose")


# ---------------------------------------------------------------------------
# Pool Class
# ---------------------------------------------------------------------------


class Pool:
    """Registry of relay connections with multi-relay operations.

    Supports two construction patterns: direct instantiation with a
    ``PoolConfig`` object, or factory methods ``from_yaml()``/``from_dict()``
    for configuration-driven setup. Connections are opened lazily by the
    operations that need them.

    Args:
        config: Pool configuration. Defaults apply when omitted.
        codec: Event codec shared by every connection.
        transport_factory: Transport factory shared by every connection.
    """

    def __init__(
        self,
        config: PoolConfig | None = None,
        *,
        codec: EventCodec | None = None,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        self._config = config or PoolConfig()
        self._codec = codec
        self._transport_factory = transport_factory
        self._connections: dict[str, Connection] = {}
        self._seen_on: OrderedDict[str, set[str]] = OrderedDict()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._notice_listeners: list[PoolNoticeCallback] = []
        self._logger = Logger("nostrpool.pool", json_output=self._config.json_logs)

    @classmethod
    def from_yaml(cls, config_path: str, **kwargs: Any) -> Pool:
        """Create a Pool from a YAML configuration file.

        Raises:
            FileNotFoundError: If the configuration file does not exist.
            ConfigurationError: If the file holds invalid settings.
        """
        return cls.from_dict(load_yaml(config_path), **kwargs)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any], **kwargs: Any) -> Pool:
        """Create a Pool from a dictionary matching ``PoolConfig`` field names.

        Raises:
            ConfigurationError: If the settings fail validation.
        """
        try:
            config = PoolConfig(**config_dict)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid pool configuration: {e}") from e
        return cls(config=config, **kwargs)

    @property
    def config(self) -> PoolConfig:
        return self._config

    @property
    def connections(self) -> Mapping[str, Connection]:
        """Read-only view of the registry by normalized URL."""
        return MappingProxyType(self._connections)

    def get_connection(self, url: str) -> Connection | None:
        """Return the registered connection for *url*, if any."""
        try:
            return self._connections.get(normalize_url(url))
        except ValueError:
            return None

    def on_notice(self, callback: PoolNoticeCallback) -> PoolNoticeCallback:
        """Register ``callback(url, message)`` for ``NOTICE`` frames from any relay."""
        self._notice_listeners.append(callback)
        return callback

    # -------------------------------------------------------------------------
    # Connection registry
    # -------------------------------------------------------------------------

    async def ensure_connection(self, url: str) -> Connection:
        """Return the open connection for *url*, creating it if needed.

        The entry is registered before the handshake is awaited, so
        concurrent calls for the same relay share one connection.

        Raises:
            ValueError: If *url* is not a valid relay URL.
            TransportError: If the relay cannot be reached. The entry is
                removed from the registry.
        """
        key = normalize_url(url)
        conn = self._connections.get(key)
        if conn is None or conn.state is ConnectionState.CLOSED:
            conn = self._create_connection(key)
            self._connections[key] = conn

        try:
            await conn.connect()
        except TransportError:
            if self._connections.get(key) is conn:
                del self._connections[key]
            raise
        return conn

    def _create_connection(self, url: str) -> Connection:
        conn = Connection(
            url,
            self._config.connection,
            codec=self._codec,
            transport_factory=self._transport_factory,
        )
        conn.on_notice(lambda message: self._dispatch_notice(url, message))
        return conn

    def _dispatch_notice(self, url: str, message: str) -> None:
        invoke_all(self._notice_listeners, url, message, logger=self._logger, slot="notice", url=url)

    def _normalize_urls(self, urls: Iterable[str]) -> list[str]:
        """Normalize and deduplicate *urls* in order, dropping invalid ones."""
        relays: list[str] = []
        for url in urls:
            try:
                key = normalize_url(url)
            except ValueError as e:
                self._logger.warning("relay_url_invalid", url=url, error=str(e))
                continue
            if key not in relays:
                relays.append(key)
        return relays

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # -------------------------------------------------------------------------
    # Seen-on index
    # -------------------------------------------------------------------------

    def seen_on(self, event_id: str) -> set[str]:
        """Return the relays *event_id* was delivered from (a copy)."""
        return set(self._seen_on.get(event_id, ()))

    def _record_seen(self, event_id: str, url: str) -> None:
        relays = self._seen_on.get(event_id)
        limit = self._config.seen_on_max_entries
        if relays is None:
            relays = self._seen_on[event_id] = set()
            if limit is not None and len(self._seen_on) > limit:
                self._seen_on.popitem(last=False)
        elif limit is not None:
            self._seen_on.move_to_end(event_id)
        relays.add(url)

    # -------------------------------------------------------------------------
    # Subscriptions and queries
    # -------------------------------------------------------------------------

    def subscribe_many(
        self,
        urls: Iterable[str],
        filters: FilterInput,
        *,
        on_event: AggregateEventCallback | None = None,
        on_eose: AggregateEoseCallback | None = None,
        on_closed: AggregateClosedCallback | None = None,
    ) -> AggregatedSubscription:
        """Subscribe to *filters* on every relay in *urls*.

        Returns immediately. Each relay is connected and subscribed in its
        own task; invalid URLs and relays that fail to connect count as
        finished for the aggregate EOSE.

        Raises:
            ValueError: If *filters* is empty.
        """
        request_filters = coerce_filters(filters)
        agg = AggregatedSubscription(self, self._normalize_urls(urls), request_filters)
        if on_event is not None:
            agg.on_event(on_event)
        if on_eose is not None:
            agg.on_eose(on_eose)
        if on_closed is not None:
            agg.on_closed(on_closed)

        if not agg.relays:
            asyncio.get_running_loop().call_soon(agg._check_complete)
        for url in agg.relays:
            self._spawn(self._subscribe_relay(agg, url))
        return agg

    async def _subscribe_relay(self, agg: AggregatedSubscription, url: str) -> None:
        try:
            conn = await self.ensure_connection(url)
            if not agg.active:
                return
            # Raises ConnectionClosedError if the relay hung up right after the handshake
            sub = conn.subscribe(
                agg.filters,
                on_event=lambda event: agg._handle_event(url, event),
                on_eose=lambda: agg._relay_done(url),
                on_closed=lambda reason: agg._relay_closed(url, reason),
            )
        except TransportError as e:
            self._logger.warning("relay_unavailable", url=url, error=str(e))
            agg._relay_done(url)
            return
        except asyncio.CancelledError:
            agg._relay_done(url)
            raise
        agg._attach(url, sub.id)

    async def query_set(
        self,
        urls: Iterable[str],
        filters: FilterInput,
        *,
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> list[Event]:
        """Collect matching events from every relay, deduplicated by id.

        Resolves when every relay has sent EOSE (or failed), or when the
        deadline passes; in the latter case the events received so far are
        returned. The underlying subscriptions are always closed.

        Returns:
            Events in first-arrival order.
        """
        events: list[Event] = []
        finished = asyncio.Event()
        agg = self.subscribe_many(urls, filters, on_event=events.append, on_eose=finished.set)
        deadline = self._config.query_timeout if timeout is None else timeout
        try:
            async with asyncio.timeout(deadline):
                await finished.wait()
        except TimeoutError:
            self._logger.debug("query_timeout", relays=len(agg.relays), events=len(events))
        finally:
            agg.close()
        return events

    async def query_one(
        self,
        urls: Iterable[str],
        filters: FilterInput,
        *,
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> Event | None:
        """Return the first matching event from any relay.

        Returns None if every relay finished without a match or the deadline
        passed. All subscriptions are closed as soon as the result is known.
        """
        result: asyncio.Future[Event | None] = asyncio.get_running_loop().create_future()

        def first(event: Event) -> None:
            if not result.done():
                result.set_result(event)

        def exhausted() -> None:
            if not result.done():
                result.set_result(None)

        agg = self.subscribe_many(urls, filters, on_event=first, on_eose=exhausted)
        deadline = self._config.query_timeout if timeout is None else timeout
        try:
            async with asyncio.timeout(deadline):
                return await result
        except TimeoutError:
            self._logger.debug("query_timeout", relays=len(agg.relays), events=0)
            return None
        finally:
            agg.close()

    async def count_many(
        self,
        urls: Iterable[str],
        filters: FilterInput,
        *,
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> dict[str, int | None]:
        """Ask every relay for its NIP-45 count.

        Returns:
            Count per normalized relay URL; None where the relay failed,
            refused or did not answer in time.
        """
        request_filters = coerce_filters(filters)
        deadline = self._config.query_timeout if timeout is None else timeout

        async def count_one(url: str) -> int | None:
            try:
                async with asyncio.timeout(deadline):
                    conn = await self.ensure_connection(url)
                    return await conn.count(request_filters, timeout=deadline)
            except TransportError as e:
                self._logger.warning("relay_unavailable", url=url, error=str(e))
                return None
            except TimeoutError:
                return None

        relays = self._normalize_urls(urls)
        results = await asyncio.gather(*(count_one(url) for url in relays))
        return dict(zip(relays, results, strict=True))

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    def publish_many(
        self,
        urls: Iterable[str],
        event: Event,
        *,
        timeout: float | None = None,
    ) -> list[PublishTracker]:
        """Publish *event* to every relay in *urls*.

        Returns immediately with one tracker per distinct relay, in *urls*
        order. Deadlines start now, so they include the connection
        handshake. A relay that cannot be reached resolves its tracker
        ``FAILED``; the others are unaffected.
        """
        deadline = self._config.connection.publish_timeout if timeout is None else timeout
        trackers: list[PublishTracker] = []
        relays: set[str] = set()
        for url in urls:
            try:
                key = normalize_url(url)
            except ValueError as e:
                tracker = PublishTracker(event.id, url)
                tracker._resolve(PublishStatus.FAILED, f"invalid relay url: {e}")
                trackers.append(tracker)
                continue
            if key in relays:
                continue
            relays.add(key)
            tracker = PublishTracker(event.id, key)
            tracker._arm(deadline)
            trackers.append(tracker)
            self._spawn(self._publish_relay(key, event, tracker))
        return trackers

    async def _publish_relay(self, url: str, event: Event, tracker: PublishTracker) -> None:
        try:
            conn = await self.ensure_connection(url)
            conn.publish(event, tracker=tracker)
        except TransportError as e:
            self._logger.warning("publish_failed", url=url, event_id=event.id, error=str(e))
            tracker._cancel_timer()
            tracker._resolve(PublishStatus.FAILED, str(e))
            return
        except asyncio.CancelledError:
            tracker._cancel_timer()
            tracker._resolve(PublishStatus.FAILED, "pool closed")
            raise

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def close(self, urls: Iterable[str] | None = None) -> None:
        """Close the given relays, or every relay and pending task when *urls* is None."""
        if urls is None:
            targets = list(self._connections.values())
            self._connections.clear()
            tasks = list(self._tasks)
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        else:
            targets = []
            for key in self._normalize_urls(urls):
                conn = self._connections.pop(key, None)
                if conn is not None:
                    targets.append(conn)

        results = await asyncio.gather(*(c.close() for c in targets), return_exceptions=True)
        for conn, result in zip(targets, results, strict=True):
            if isinstance(result, Exception):
                self._logger.warning("relay_close_failed", url=conn.url, error=str(result))
        self._logger.info("pool_closed", relays=len(targets))

    async def __aenter__(self) -> Pool:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any | None,
    ) -> None:
        """Close every connection on context exit."""
        await self.close()

    def __repr__(self) -> str:
        return f"Pool(relays={len(self._connections)}, seen_on={len(self._seen_on)})"
