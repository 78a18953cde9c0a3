"""Protocol helpers with external dependencies: codec, keys and transport.

Attributes:
    EventCodec: Structural validation plus id and signature verification.
        See [EventCodec][nostrpool.utils.codec.EventCodec].
    sign_event: Build and sign an event with ``nostr-sdk`` keys.
    WebSocketTransport: aiohttp WebSocket implementation of the
        [Transport][nostrpool.utils.transport.Transport] protocol.
"""

from .codec import EventCodec, compute_id, serialize, verify_schnorr
from .keys import KeysConfig, load_keys_from_env, sign_event
from .transport import Transport, TransportFactory, WebSocketTransport


__all__ = [
    "EventCodec",
    "KeysConfig",
    "Transport",
    "TransportFactory",
    "WebSocketTransport",
    "compute_id",
    "load_keys_from_env",
    "serialize",
    "sign_event",
    "verify_schnorr",
]
