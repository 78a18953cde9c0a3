"""Unit tests for models.constants module."""

from enum import IntEnum, StrEnum

from nostrpool.models.constants import EVENT_KIND_MAX, EventKind, MessageType, NetworkType


class TestMessageType:
    """Tests for MessageType StrEnum."""

    def test_is_str_enum(self) -> None:
        assert issubclass(MessageType, StrEnum)
        assert MessageType.REQ == "REQ"

    def test_all_values(self) -> None:
        """Every NIP-01, NIP-42 and NIP-45 frame tag is defined."""
        expected = {"EVENT", "REQ", "CLOSE", "EOSE", "OK", "CLOSED", "NOTICE", "AUTH", "COUNT"}
        assert {v.value for v in MessageType} == expected

    def test_construct_from_wire_tag(self) -> None:
        assert MessageType("EOSE") is MessageType.EOSE


class TestNetworkType:
    """Tests for NetworkType StrEnum."""

    def test_all_values(self) -> None:
        expected = {"clearnet", "tor", "i2p", "loki", "local"}
        assert {v.value for v in NetworkType} == expected

    def test_string_comparison(self) -> None:
        assert NetworkType.TOR == "tor"
        assert NetworkType.LOCAL == "local"


class TestEventKind:
    """Tests for EventKind IntEnum."""

    def test_is_int_enum(self) -> None:
        assert issubclass(EventKind, IntEnum)

    def test_well_known_values(self) -> None:
        assert EventKind.SET_METADATA == 0
        assert EventKind.TEXT_NOTE == 1
        assert EventKind.RELAY_LIST == 10002
        assert EventKind.CLIENT_AUTH == 22242

    def test_all_within_range(self) -> None:
        assert all(0 <= kind <= EVENT_KIND_MAX for kind in EventKind)
