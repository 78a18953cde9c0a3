"""Pure frozen dataclasses with zero I/O for Nostr events, filters and relay URLs.

The models layer is the foundation of the package. It depends only on the
standard library and ``rfc3986``. Every model uses
``@dataclass(frozen=True, slots=True)`` and validates in ``__post_init__`` so
invalid instances never escape the constructor.

Attributes:
    Event: Immutable signed event. Structural checks only; the id binding and
        signature are verified by [EventCodec][nostrpool.utils.codec.EventCodec].
    Filter: Subscription filter with pure matching.
    RelayUrl: Normalized ``ws``/``wss`` URL used as connection identity.
    EventKind, MessageType, NetworkType: Shared enumerations.
"""

from .constants import EVENT_KIND_MAX, EventKind, MessageType, NetworkType
from .event import Event
from .filter import Filter, coerce_filters, match_filters
from .relay import RelayUrl, normalize_url


__all__ = [
    "EVENT_KIND_MAX",
    "Event",
    "EventKind",
    "Filter",
    "MessageType",
    "NetworkType",
    "RelayUrl",
    "coerce_filters",
    "match_filters",
    "normalize_url",
]
