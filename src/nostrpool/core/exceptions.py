"""nostrpool exception hierarchy.

Provides typed exceptions for every error category so callers can catch
specific failures while ``asyncio.CancelledError`` propagates untouched.

Exception hierarchy:

```text
NostrPoolError (base -- never raised directly)
├── ConfigurationError          -- invalid config dict or YAML
├── TransportError              -- relay unreachable, socket error
│   ├── RelayTimeoutError       -- connect attempt timed out
│   └── ConnectionClosedError   -- operation on a closed connection
├── ProtocolError               -- malformed frame from a relay
└── EventValidationError        -- event failed structural or signature checks
```

Note:
    Only ``TransportError`` and ``ConfigurationError`` ever reach callers.
    ``ProtocolError`` and ``EventValidationError`` are raised internally by
    the frame decoder and the codec, then logged and dropped by
    [Connection][nostrpool.client.connection.Connection]: a misbehaving relay
    must never be able to abort a client by sending bad data. Deadline expiry
    and unknown publish outcomes are reported as
    [PublishStatus][nostrpool.client.publish.PublishStatus] values, not raised.
"""

from __future__ import annotations


class NostrPoolError(Exception):
    """Base exception for all nostrpool errors. Never raised directly."""


class ConfigurationError(NostrPoolError):
    """Invalid or missing configuration (dict, YAML, env vars)."""


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class TransportError(NostrPoolError):
    """The WebSocket session could not be established or broke.

    Surfaced to the caller of
    [Connection.connect()][nostrpool.client.connection.Connection.connect]
    and [Pool.ensure_connection()][nostrpool.client.pool.Pool.ensure_connection].
    Multi-relay pool operations log it and treat the relay as non-contributing.
    """


class RelayTimeoutError(TransportError):
    """Connection attempt timed out."""


class ConnectionClosedError(TransportError):
    """Operation attempted on a connection that has been closed for good."""


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ProtocolError(NostrPoolError):
    """Relay sent a frame that is not valid JSON or has the wrong shape."""


class EventValidationError(NostrPoolError):
    """Event failed the structural check or the id/signature verification."""
