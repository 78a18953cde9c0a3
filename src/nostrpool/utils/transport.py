"""WebSocket transport for relay connections.

[Connection][nostrpool.client.connection.Connection] talks to a relay through
the small [Transport][nostrpool.utils.transport.Transport] protocol:
``connect``/``send``/``receive``/``close``. The production implementation,
[WebSocketTransport][nostrpool.utils.transport.WebSocketTransport], is built
on ``aiohttp``; overlay networks (Tor, I2P, Lokinet) go through a SOCKS5
proxy via ``aiohttp_socks``. Tests substitute an in-memory transport through
the ``transport_factory`` argument of Connection and Pool.

Note:
    ``allow_insecure`` disables certificate verification entirely. It exists
    for relays with self-signed or expired certificates and must be opted
    into explicitly.
"""

from __future__ import annotations

import asyncio
import contextlib
import ssl
from collections.abc import Callable
from typing import Final, Protocol

import aiohttp
from aiohttp_socks import ProxyConnector

from nostrpool.core.exceptions import RelayTimeoutError, TransportError
from nostrpool.core.logger import Logger


DEFAULT_TIMEOUT: Final[float] = 10.0
DEFAULT_CLOSE_TIMEOUT: Final[float] = 5.0
DEFAULT_MAX_MESSAGE_SIZE: Final[int] = 4 * 1024 * 1024
DEFAULT_HEARTBEAT: Final[float] = 30.0

logger = Logger("nostrpool.transport")


class Transport(Protocol):
    """Bidirectional text message channel to one relay."""

    async def connect(self) -> None:
        """Open the session. Raises ``TransportError`` on failure."""

    async def send(self, message: str) -> None:
        """Send one text frame. Raises ``TransportError`` if the session is gone."""

    async def receive(self) -> str | None:
        """Return the next text frame, or None once the session has closed."""

    async def close(self) -> None:
        """Close the session. Idempotent."""


TransportFactory = Callable[[str], Transport]


class WebSocketTransport:
    """aiohttp-based WebSocket transport.

    Args:
        url: Normalized relay URL.
        connect_timeout: Seconds allowed for the TCP/TLS/WebSocket handshake.
        close_timeout: Seconds allowed for a graceful close.
        max_message_size: Largest accepted frame in bytes.
        heartbeat: Ping interval used by aiohttp to detect dead peers.
        proxy_url: Optional SOCKS5 proxy URL (e.g. ``socks5://tor:9050``).
        allow_insecure: Skip TLS certificate verification.
    """

    def __init__(
        self,
        url: str,
        *,
        connect_timeout: float = DEFAULT_TIMEOUT,
        close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
        max_message_size: int = DEFAULT_MAX_MESSAGE_SIZE,
        heartbeat: float | None = DEFAULT_HEARTBEAT,
        proxy_url: str | None = None,
        allow_insecure: bool = False,
    ) -> None:
        self._url = url
        self._connect_timeout = connect_timeout
        self._close_timeout = close_timeout
        self._max_message_size = max_message_size
        self._heartbeat = heartbeat
        self._proxy_url = proxy_url
        self._allow_insecure = allow_insecure
        self._session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None

    def _ssl_context(self) -> ssl.SSLContext | bool:
        if not self._allow_insecure:
            return True
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        return ctx

    async def connect(self) -> None:
        ssl_context = self._ssl_context()
        connector: aiohttp.BaseConnector
        if self._proxy_url:
            connector = ProxyConnector.from_url(self._proxy_url, ssl=ssl_context)
        else:
            connector = aiohttp.TCPConnector(ssl=ssl_context)
        client_timeout = aiohttp.ClientTimeout(total=self._connect_timeout)
        session = aiohttp.ClientSession(connector=connector, timeout=client_timeout)

        try:
            ws = await session.ws_connect(
                self._url,
                max_msg_size=self._max_message_size,
                heartbeat=self._heartbeat,
                autoping=True,
            )
        except TimeoutError:
            await session.close()
            raise RelayTimeoutError(f"Connection timeout: {self._url}") from None
        except asyncio.CancelledError:
            await session.close()
            raise
        except (aiohttp.ClientError, ssl.SSLError, OSError) as e:
            await session.close()
            raise TransportError(f"Connection failed: {self._url} ({e})") from e

        self._session = session
        self._ws = ws

    async def send(self, message: str) -> None:
        if self._ws is None or self._ws.closed:
            raise TransportError(f"WebSocket is not open: {self._url}")
        try:
            await self._ws.send_str(message)
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as e:
            raise TransportError(f"Send failed: {self._url} ({e})") from e

    async def receive(self) -> str | None:
        if self._ws is None:
            return None
        msg = await self._ws.receive()
        if msg.type == aiohttp.WSMsgType.TEXT:
            return str(msg.data)
        if msg.type == aiohttp.WSMsgType.BINARY:
            return bytes(msg.data).decode("utf-8", errors="replace")
        if msg.type == aiohttp.WSMsgType.ERROR:
            logger.debug("ws_error", url=self._url, error=self._ws.exception())
        # CLOSE, CLOSING, CLOSED, ERROR -> session terminated
        return None

    async def close(self) -> None:
        ws, session = self._ws, self._session
        self._ws = None
        self._session = None
        # aiohttp can raise assorted client/OS errors while tearing down a broken socket
        if ws is not None:
            with contextlib.suppress(Exception):
                await asyncio.wait_for(ws.close(), timeout=self._close_timeout)
        if session is not None:
            with contextlib.suppress(Exception):
                await asyncio.wait_for(session.close(), timeout=self._close_timeout)
