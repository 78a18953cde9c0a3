"""
Unit tests for utils.transport module.

Tests:
- WebSocketTransport.connect() - session setup, proxy selection, error mapping
- WebSocketTransport.send() / receive() - frame handling
- WebSocketTransport.close() - idempotent teardown
- _ssl_context() - insecure mode
"""

import ssl
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from nostrpool.core.exceptions import RelayTimeoutError, TransportError
from nostrpool.utils.transport import DEFAULT_MAX_MESSAGE_SIZE, WebSocketTransport


URL = "wss://relay.example.com"


def _ws_message(msg_type, data=None):
    msg = MagicMock()
    msg.type = msg_type
    msg.data = data
    return msg


@pytest.fixture
def ws():
    ws = MagicMock()
    ws.closed = False
    ws.send_str = AsyncMock()
    ws.receive = AsyncMock()
    ws.close = AsyncMock()
    return ws


@pytest.fixture
def session(ws):
    session = MagicMock()
    session.ws_connect = AsyncMock(return_value=ws)
    session.close = AsyncMock()
    return session


@pytest.fixture
def patched(session):
    with (
        patch("nostrpool.utils.transport.aiohttp.ClientSession", return_value=session) as cls,
        patch("nostrpool.utils.transport.aiohttp.TCPConnector") as tcp,
        patch("nostrpool.utils.transport.ProxyConnector") as proxy,
    ):
        yield MagicMock(session_cls=cls, tcp=tcp, proxy=proxy)


# =============================================================================
# connect()
# =============================================================================


class TestConnect:
    """WebSocketTransport.connect()."""

    async def test_success(self, patched, session):
        transport = WebSocketTransport(URL, heartbeat=15.0)
        await transport.connect()

        session.ws_connect.assert_awaited_once_with(
            URL, max_msg_size=DEFAULT_MAX_MESSAGE_SIZE, heartbeat=15.0, autoping=True
        )
        patched.tcp.assert_called_once_with(ssl=True)
        patched.proxy.from_url.assert_not_called()

    async def test_proxy(self, patched):
        transport = WebSocketTransport("ws://abc.onion", proxy_url="socks5://127.0.0.1:9050")
        await transport.connect()
        patched.proxy.from_url.assert_called_once_with("socks5://127.0.0.1:9050", ssl=True)
        patched.tcp.assert_not_called()

    async def test_timeout(self, patched, session):
        session.ws_connect.side_effect = TimeoutError()
        transport = WebSocketTransport(URL)
        with pytest.raises(RelayTimeoutError, match="timeout"):
            await transport.connect()
        session.close.assert_awaited_once()

    async def test_client_error(self, patched, session):
        session.ws_connect.side_effect = aiohttp.ClientConnectionError("refused")
        transport = WebSocketTransport(URL)
        with pytest.raises(TransportError, match="refused"):
            await transport.connect()
        session.close.assert_awaited_once()

    async def test_os_error(self, patched, session):
        session.ws_connect.side_effect = OSError("unreachable")
        with pytest.raises(TransportError):
            await WebSocketTransport(URL).connect()


# =============================================================================
# send() / receive()
# =============================================================================


class TestSend:
    """WebSocketTransport.send()."""

    async def test_not_open(self):
        with pytest.raises(TransportError, match="not open"):
            await WebSocketTransport(URL).send("[]")

    async def test_sends_text(self, patched, ws):
        transport = WebSocketTransport(URL)
        await transport.connect()
        await transport.send('["CLOSE","sub:1"]')
        ws.send_str.assert_awaited_once_with('["CLOSE","sub:1"]')

    async def test_send_error_wrapped(self, patched, ws):
        ws.send_str.side_effect = ConnectionResetError("reset")
        transport = WebSocketTransport(URL)
        await transport.connect()
        with pytest.raises(TransportError, match="Send failed"):
            await transport.send("[]")


class TestReceive:
    """WebSocketTransport.receive()."""

    async def test_not_connected(self):
        assert await WebSocketTransport(URL).receive() is None

    async def test_text(self, patched, ws):
        ws.receive.return_value = _ws_message(aiohttp.WSMsgType.TEXT, '["EOSE","a"]')
        transport = WebSocketTransport(URL)
        await transport.connect()
        assert await transport.receive() == '["EOSE","a"]'

    async def test_binary_decoded(self, patched, ws):
        ws.receive.return_value = _ws_message(aiohttp.WSMsgType.BINARY, b'["NOTICE","x"]')
        transport = WebSocketTransport(URL)
        await transport.connect()
        assert await transport.receive() == '["NOTICE","x"]'

    @pytest.mark.parametrize(
        "msg_type",
        [aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR],
    )
    async def test_terminal_frames(self, patched, ws, msg_type):
        ws.receive.return_value = _ws_message(msg_type)
        transport = WebSocketTransport(URL)
        await transport.connect()
        assert await transport.receive() is None


# =============================================================================
# close()
# =============================================================================


class TestClose:
    """WebSocketTransport.close()."""

    async def test_closes_ws_and_session(self, patched, ws, session):
        transport = WebSocketTransport(URL)
        await transport.connect()
        await transport.close()
        ws.close.assert_awaited_once()
        session.close.assert_awaited_once()

    async def test_idempotent(self, patched, ws):
        transport = WebSocketTransport(URL)
        await transport.connect()
        await transport.close()
        await transport.close()
        ws.close.assert_awaited_once()

    async def test_teardown_errors_suppressed(self, patched, ws):
        ws.close.side_effect = aiohttp.ClientError("broken")
        transport = WebSocketTransport(URL)
        await transport.connect()
        await transport.close()

    async def test_close_before_connect(self):
        await WebSocketTransport(URL).close()


class TestSslContext:
    """_ssl_context()."""

    def test_verified_by_default(self):
        assert WebSocketTransport(URL)._ssl_context() is True

    def test_insecure(self):
        ctx = WebSocketTransport(URL, allow_insecure=True)._ssl_context()
        assert isinstance(ctx, ssl.SSLContext)
        assert ctx.verify_mode == ssl.CERT_NONE
        assert ctx.check_hostname is False
