r"""nostrpool -- asyncio client for the Nostr event-relay protocol (NIP-01).

Connects to many untrusted relays over WebSockets, multiplexes filter-based
subscriptions with end-of-stored-events detection, tracks publish
acknowledgments per relay, and deduplicates results across relays while
recording where each event was seen.

Imports flow strictly downward:

```text
               client          Connection, Subscription, Pool
              /      \
          utils      core      Codec, keys, transport / errors, logging
              \      /
              models           Pure frozen dataclasses (zero I/O)
```

Attributes:
    models: Event, Filter and RelayUrl. Zero I/O.
    core: Exceptions, structured logging, metrics, YAML loading.
    utils: Event codec, key handling (``nostr-sdk``), WebSocket transport.
    client: Connection state machine, subscriptions, publish trackers and
        the multi-relay pool.

Note:
    For lightweight usage, import directly from subpackages::

        from nostrpool.models import Filter
        from nostrpool.client import Pool

    Top-level imports (``from nostrpool import Pool``) use lazy loading
    and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("nostrpool")

__all__ = [
    "AggregatedSubscription",
    "Connection",
    "ConnectionConfig",
    "ConnectionState",
    "Event",
    "EventCodec",
    "Filter",
    "Logger",
    "NostrPoolError",
    "Pool",
    "PoolConfig",
    "PublishStatus",
    "PublishTracker",
    "ReconnectConfig",
    "RelayUrl",
    "Subscription",
    "sign_event",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "Logger": ("nostrpool.core", "Logger"),
    "NostrPoolError": ("nostrpool.core", "NostrPoolError"),
    "Event": ("nostrpool.models", "Event"),
    "Filter": ("nostrpool.models", "Filter"),
    "RelayUrl": ("nostrpool.models", "RelayUrl"),
    "EventCodec": ("nostrpool.utils", "EventCodec"),
    "sign_event": ("nostrpool.utils", "sign_event"),
    "AggregatedSubscription": ("nostrpool.client", "AggregatedSubscription"),
    "Connection": ("nostrpool.client", "Connection"),
    "ConnectionConfig": ("nostrpool.client", "ConnectionConfig"),
    "ConnectionState": ("nostrpool.client", "ConnectionState"),
    "Pool": ("nostrpool.client", "Pool"),
    "PoolConfig": ("nostrpool.client", "PoolConfig"),
    "PublishStatus": ("nostrpool.client", "PublishStatus"),
    "PublishTracker": ("nostrpool.client", "PublishTracker"),
    "ReconnectConfig": ("nostrpool.client", "ReconnectConfig"),
    "Subscription": ("nostrpool.client", "Subscription"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'nostrpool' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
