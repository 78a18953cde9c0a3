"""
Normalized relay WebSocket URL used as connection identity.

Parses and normalizes ``ws://`` and ``wss://`` URLs so that two spellings of
the same relay (``wss://Relay.Example.com:443/``, ``wss://relay.example.com``)
map to a single [Connection][nostrpool.client.connection.Connection] in the
[Pool][nostrpool.client.pool.Pool] registry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from ipaddress import IPv4Network, IPv6Network, ip_address, ip_network
from typing import Any, ClassVar

from rfc3986 import uri_reference
from rfc3986.exceptions import UnpermittedComponentError, ValidationError
from rfc3986.validators import Validator

from .constants import NetworkType


@dataclass(frozen=True, slots=True)
class RelayUrl:
    """Immutable, normalized relay URL.

    The scheme given by the caller is preserved (a client may legitimately
    talk ``ws://`` to a local development relay); everything else is
    canonicalized:

    * scheme and host are lowercased
    * the default port for the scheme (80 for ``ws``, 443 for ``wss``) is dropped
    * duplicate and trailing slashes are removed from the path
    * query strings and fragments are rejected

    Attributes:
        url: Fully normalized URL including scheme.
        network: Detected [NetworkType][nostrpool.models.constants.NetworkType].
        scheme: ``ws`` or ``wss``.
        host: Hostname or IP address (brackets stripped for IPv6).
        port: Explicit non-default port, or ``None``.
        path: Normalized path, or ``None``.

    Raises:
        ValueError: If the URL is malformed, uses another scheme, has no
            host, or contains null bytes.

    Examples:
        ```python
        RelayUrl("wss://Relay.Damus.io:443/").url   # 'wss://relay.damus.io'
        RelayUrl("ws://abc.onion").network          # NetworkType.TOR
        RelayUrl("ws://localhost:7777").url         # 'ws://localhost:7777'
        ```
    """

    raw_url: str = field(repr=False, compare=False)

    url: str = field(init=False)
    network: NetworkType = field(init=False)
    scheme: str = field(init=False)
    host: str = field(init=False)
    port: int | None = field(init=False)
    path: str | None = field(init=False)

    _DEFAULT_PORTS: ClassVar[dict[str, int]] = {"ws": 80, "wss": 443}

    _NETWORK_TLDS: ClassVar[dict[str, NetworkType]] = {
        ".onion": NetworkType.TOR,
        ".i2p": NetworkType.I2P,
        ".loki": NetworkType.LOKI,
    }

    _LOCAL_NETWORKS: ClassVar[list[IPv4Network | IPv6Network]] = [
        ip_network("0.0.0.0/8"),
        ip_network("10.0.0.0/8"),
        ip_network("100.64.0.0/10"),
        ip_network("127.0.0.0/8"),
        ip_network("169.254.0.0/16"),
        ip_network("172.16.0.0/12"),
        ip_network("192.168.0.0/16"),
        ip_network("::1/128"),
        ip_network("fc00::/7"),
        ip_network("fe80::/10"),
    ]

    def __post_init__(self) -> None:
        if not isinstance(self.raw_url, str):
            raise ValueError(f"Relay URL must be a str, got {type(self.raw_url).__name__}")
        if "\x00" in self.raw_url:
            raise ValueError("Relay URL contains null bytes")

        parsed = self._parse(self.raw_url)

        object.__setattr__(self, "url", parsed["url"])
        object.__setattr__(self, "network", parsed["network"])
        object.__setattr__(self, "scheme", parsed["scheme"])
        object.__setattr__(self, "host", parsed["host"])
        object.__setattr__(self, "port", parsed["port"])
        object.__setattr__(self, "path", parsed["path"])

    def __str__(self) -> str:
        return self.url

    @staticmethod
    def _detect_network(host: str) -> NetworkType:
        """Classify a hostname into a network type."""
        host_bare = host.lower().strip("[]")

        for tld, network in RelayUrl._NETWORK_TLDS.items():
            if host_bare.endswith(tld):
                return network

        if host_bare in ("localhost", "localhost.localdomain"):
            return NetworkType.LOCAL

        try:
            ip = ip_address(host_bare)
        except ValueError:
            return NetworkType.CLEARNET
        if any(ip in net for net in RelayUrl._LOCAL_NETWORKS):
            return NetworkType.LOCAL
        return NetworkType.CLEARNET

    @staticmethod
    def _parse(raw: str) -> dict[str, Any]:
        """Parse and normalize a raw relay URL string.

        Raises:
            ValueError: If the scheme is not ``ws``/``wss`` or the URI is invalid.
        """
        uri = uri_reference(raw.strip()).normalize()

        validator = (
            Validator()
            .require_presence_of("scheme", "host")
            .allow_schemes("ws", "wss")
            .check_validity_of("scheme", "host", "port", "path")
        )

        try:
            validator.validate(uri)
        except UnpermittedComponentError:
            raise ValueError("Invalid scheme: must be ws or wss") from None
        except ValidationError as e:
            raise ValueError(f"Invalid URL: {e}") from None

        if uri.query:
            raise ValueError(f"Relay URL must not contain a query string: ?{uri.query}")
        if uri.fragment:
            raise ValueError(f"Relay URL must not contain a fragment: #{uri.fragment}")

        scheme = uri.scheme.lower()
        host = uri.host.strip("[]").lower()
        if not host:
            raise ValueError("Relay URL has an empty host")
        port = int(uri.port) if uri.port else None
        if port == RelayUrl._DEFAULT_PORTS[scheme]:
            port = None

        path = uri.path or ""
        while "//" in path:
            path = path.replace("//", "/")
        path = path.rstrip("/") or None

        formatted_host = f"[{host}]" if ":" in host else host
        netloc = f"{formatted_host}:{port}" if port else formatted_host

        return {
            "url": f"{scheme}://{netloc}{path or ''}",
            "network": RelayUrl._detect_network(host),
            "scheme": scheme,
            "host": host,
            "port": port,
            "path": path,
        }


def normalize_url(url: str | RelayUrl) -> str:
    """Return the canonical string form of *url*.

    Raises:
        ValueError: If *url* is not a valid relay URL.
    """
    if isinstance(url, RelayUrl):
        return url.url
    return RelayUrl(url).url
