"""
Unit tests for models.event module.

Tests:
- Construction with valid fields, tag freezing
- Structural validation of every field
- from_dict() / to_dict() / to_json()
- get_tag_values()
- Immutability, hashing and equality
"""

import json
from dataclasses import FrozenInstanceError

import pytest

from nostrpool.models import Event
from tests.fixtures.transport import PUBKEY, SIG, make_event


def _fields(**overrides):
    data = {
        "id": "c" * 64,
        "pubkey": PUBKEY,
        "created_at": 1_700_000_000,
        "kind": 1,
        "tags": [["e", "d" * 64], ["t", "nostr"]],
        "content": "hello",
        "sig": SIG,
    }
    data.update(overrides)
    return data


class TestConstruction:
    """Event construction."""

    def test_valid(self):
        event = Event(**_fields())
        assert event.kind == 1
        assert event.content == "hello"

    def test_tags_frozen_to_tuples(self):
        event = Event(**_fields())
        assert event.tags == (("e", "d" * 64), ("t", "nostr"))

    def test_empty_tags(self):
        event = Event(**_fields(tags=[]))
        assert event.tags == ()

    def test_unicode_content(self):
        event = Event(**_fields(content="héllo 🌍"))
        assert event.content == "héllo 🌍"


class TestValidation:
    """Structural checks in __post_init__."""

    @pytest.mark.parametrize("field", ["id", "pubkey", "sig"])
    def test_wrong_hex_length(self, field):
        with pytest.raises(ValueError, match=field):
            Event(**_fields(**{field: "ab"}))

    def test_uppercase_hex_rejected(self):
        with pytest.raises(ValueError, match="lowercase hex"):
            Event(**_fields(id="C" * 64))

    def test_non_hex_rejected(self):
        with pytest.raises(ValueError, match="lowercase hex"):
            Event(**_fields(pubkey="z" * 64))

    def test_id_not_str(self):
        with pytest.raises(TypeError, match="id"):
            Event(**_fields(id=123))

    def test_negative_created_at(self):
        with pytest.raises(ValueError, match="created_at"):
            Event(**_fields(created_at=-1))

    def test_bool_kind_rejected(self):
        with pytest.raises(TypeError, match="kind"):
            Event(**_fields(kind=True))

    def test_float_created_at_rejected(self):
        with pytest.raises(TypeError, match="created_at"):
            Event(**_fields(created_at=1.5))

    def test_kind_above_max(self):
        with pytest.raises(ValueError, match="kind"):
            Event(**_fields(kind=65_536))

    def test_kind_max_allowed(self):
        assert Event(**_fields(kind=65_535)).kind == 65_535

    def test_tags_not_list(self):
        with pytest.raises(TypeError, match="tags"):
            Event(**_fields(tags="e"))

    def test_tag_not_list(self):
        with pytest.raises(TypeError, match=r"tags\[0\]"):
            Event(**_fields(tags=["e"]))

    def test_empty_tag(self):
        with pytest.raises(ValueError, match="must not be empty"):
            Event(**_fields(tags=[[]]))

    def test_tag_item_not_str(self):
        with pytest.raises(TypeError, match="items must be str"):
            Event(**_fields(tags=[["e", 1]]))

    def test_content_not_str(self):
        with pytest.raises(TypeError, match="content"):
            Event(**_fields(content=None))

    def test_content_lone_surrogate_rejected(self):
        with pytest.raises(ValueError, match="content must be valid UTF-8"):
            Event(**_fields(content="\ud800"))

    def test_tag_lone_surrogate_rejected(self):
        with pytest.raises(ValueError, match="valid UTF-8"):
            Event(**_fields(tags=[["t", "\udfff"]]))


class TestFromDict:
    """Event.from_dict()."""

    def test_roundtrip(self):
        data = _fields()
        assert Event.from_dict(data).to_dict() == data

    def test_missing_fields(self):
        data = _fields()
        del data["sig"]
        del data["kind"]
        with pytest.raises(ValueError, match="kind, sig"):
            Event.from_dict(data)

    def test_not_mapping(self):
        with pytest.raises(TypeError, match="event"):
            Event.from_dict(["not", "a", "dict"])

    def test_extra_fields_ignored(self):
        event = Event.from_dict({**_fields(), "seen": True})
        assert event.id == "c" * 64


class TestSerialization:
    """to_dict() and to_json()."""

    def test_to_dict_tags_are_lists(self):
        assert Event(**_fields()).to_dict()["tags"] == [["e", "d" * 64], ["t", "nostr"]]

    def test_to_json_compact(self):
        text = Event(**_fields()).to_json()
        assert ", " not in text
        assert ": " not in text
        assert json.loads(text) == _fields()

    def test_to_json_keeps_unicode(self):
        assert "🌍" in Event(**_fields(content="🌍")).to_json()


class TestTagValues:
    """get_tag_values()."""

    def test_values_in_order(self):
        event = make_event(tags=[["p", "1"], ["e", "x"], ["p", "2"]])
        assert event.get_tag_values("p") == ["1", "2"]

    def test_single_element_tags_skipped(self):
        event = make_event(tags=[["p"], ["p", "2"]])
        assert event.get_tag_values("p") == ["2"]

    def test_missing(self):
        assert make_event().get_tag_values("p") == []


class TestIdentity:
    """Immutability, equality and hashing."""

    def test_frozen(self):
        event = make_event()
        with pytest.raises(FrozenInstanceError):
            event.content = "changed"

    def test_equal_by_value(self):
        assert make_event() == make_event()

    def test_hashable(self):
        assert len({make_event(), make_event(), make_event(content="other")}) == 2
