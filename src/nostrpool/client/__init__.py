"""Relay connections, subscriptions, publish tracking and the multi-relay pool.

Attributes:
    Connection: One relay's transport session and protocol state machine.
        See [Connection][nostrpool.client.connection.Connection].
    Subscription: Handle for a single ``REQ`` on one connection.
    PublishTracker: Per-relay outcome of one publish.
    Pool: Registry of connections with fan-out, deduplication and
        seen-on tracking. See [Pool][nostrpool.client.pool.Pool].
"""

from .connection import Connection, ConnectionConfig, ConnectionState, ReconnectConfig
from .messages import decode_relay_message
from .pool import AggregatedSubscription, Pool, PoolConfig
from .publish import PublishStatus, PublishTracker
from .subscription import Subscription, SubscriptionState


__all__ = [
    "AggregatedSubscription",
    "Connection",
    "ConnectionConfig",
    "ConnectionState",
    "Pool",
    "PoolConfig",
    "PublishStatus",
    "PublishTracker",
    "ReconnectConfig",
    "Subscription",
    "SubscriptionState",
    "decode_relay_message",
]
