"""Tests for nostrpool.models._validation shared helpers."""

from __future__ import annotations

import pytest

from nostrpool.models._validation import (
    freeze_tags,
    validate_hex,
    validate_hex_prefix,
    validate_instance,
    validate_int,
    validate_tags,
    validate_utf8,
)


class TestValidateInstance:
    def test_correct_type_passes(self) -> None:
        validate_instance("hello", str, "field")

    def test_wrong_type_raises(self) -> None:
        with pytest.raises(TypeError, match="field must be a str, got int"):
            validate_instance(42, str, "field")

    def test_article(self) -> None:
        with pytest.raises(TypeError, match="field must be an int, got NoneType"):
            validate_instance(None, int, "field")


class TestValidateInt:
    def test_zero_passes(self) -> None:
        validate_int(0, "n")

    def test_bool_rejected(self) -> None:
        with pytest.raises(TypeError, match="n must be an int, got bool"):
            validate_int(False, "n")

    def test_negative(self) -> None:
        with pytest.raises(ValueError, match="non-negative"):
            validate_int(-5, "n")

    def test_maximum(self) -> None:
        validate_int(10, "n", maximum=10)
        with pytest.raises(ValueError, match="<= 10"):
            validate_int(11, "n", maximum=10)


class TestValidateHex:
    def test_valid(self) -> None:
        validate_hex("0a" * 32, 64, "id")

    def test_length(self) -> None:
        with pytest.raises(ValueError, match="64 hex chars, got 2"):
            validate_hex("0a", 64, "id")

    def test_uppercase(self) -> None:
        with pytest.raises(ValueError, match="lowercase hex"):
            validate_hex("0A" * 32, 64, "id")

    def test_not_str(self) -> None:
        with pytest.raises(TypeError):
            validate_hex(b"0a" * 32, 64, "id")


class TestValidateHexPrefix:
    def test_short_prefix(self) -> None:
        validate_hex_prefix("a", "ids")

    def test_empty(self) -> None:
        with pytest.raises(ValueError, match="1..64"):
            validate_hex_prefix("", "ids")

    def test_too_long(self) -> None:
        with pytest.raises(ValueError, match="1..64"):
            validate_hex_prefix("a" * 65, "ids")


class TestValidateTags:
    def test_lists_and_tuples(self) -> None:
        validate_tags([["e", "x"], ("p", "y")], "tags")

    def test_dict_rejected(self) -> None:
        with pytest.raises(TypeError, match="tags must be a list, got dict"):
            validate_tags({"e": "x"}, "tags")

    def test_nested_non_str(self) -> None:
        with pytest.raises(TypeError, match=r"tags\[1\] items must be str"):
            validate_tags([["e"], ["p", None]], "tags")

    def test_lone_surrogate_rejected(self) -> None:
        with pytest.raises(ValueError, match=r"tags\[0\] must be valid UTF-8"):
            validate_tags([["t", "\ud800"]], "tags")


class TestValidateUtf8:
    def test_non_ascii_passes(self) -> None:
        validate_utf8("héllo 🌍", "content")

    def test_lone_surrogate_rejected(self) -> None:
        with pytest.raises(ValueError, match="content must be valid UTF-8"):
            validate_utf8("bad \udc80", "content")


class TestFreezeTags:
    def test_nested_tuples(self) -> None:
        assert freeze_tags([["e", "x"], ["p"]]) == (("e", "x"), ("p",))
