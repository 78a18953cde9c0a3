"""Shared validation helpers for frozen dataclass models.

Private module -- not part of the public API. Used by ``__post_init__``
methods in sibling model modules and by the event codec to enforce runtime
type constraints on untrusted input.
"""

from __future__ import annotations

from string import hexdigits
from typing import Any


_HEX_CHARS = frozenset(hexdigits.lower())


def validate_instance(value: Any, expected: type, name: str) -> None:
    """Raise ``TypeError`` if *value* is not an instance of *expected*."""
    if not isinstance(value, expected):
        article = "an" if expected.__name__[0] in "AEIOUaeiou" else "a"
        raise TypeError(f"{name} must be {article} {expected.__name__}, got {type(value).__name__}")


def validate_int(value: Any, name: str, *, maximum: int | None = None) -> None:
    """Raise if *value* is not a non-negative ``int`` (``bool`` excluded)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative")
    if maximum is not None and value > maximum:
        raise ValueError(f"{name} must be <= {maximum}, got {value}")


def validate_hex(value: Any, length: int, name: str) -> None:
    """Raise if *value* is not a lowercase hex string of exactly *length* chars."""
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str, got {type(value).__name__}")
    if len(value) != length:
        raise ValueError(f"{name} must be {length} hex chars, got {len(value)}")
    if not _HEX_CHARS.issuperset(value):
        raise ValueError(f"{name} must be lowercase hex")


def validate_hex_prefix(value: Any, name: str, *, max_length: int = 64) -> None:
    """Raise if *value* is not a non-empty lowercase hex prefix."""
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str, got {type(value).__name__}")
    if not value or len(value) > max_length:
        raise ValueError(f"{name} must be 1..{max_length} hex chars")
    if not _HEX_CHARS.issuperset(value):
        raise ValueError(f"{name} must be lowercase hex")


def validate_tags(value: Any, name: str) -> None:
    """Raise if *value* is not a sequence of non-empty string sequences.

    Accepts both lists (decoded JSON) and tuples (frozen models).
    """
    if not isinstance(value, list | tuple):
        raise TypeError(f"{name} must be a list, got {type(value).__name__}")
    for i, tag in enumerate(value):
        if not isinstance(tag, list | tuple):
            raise TypeError(f"{name}[{i}] must be a list, got {type(tag).__name__}")
        if not tag:
            raise ValueError(f"{name}[{i}] must not be empty")
        for item in tag:
            if not isinstance(item, str):
                raise TypeError(f"{name}[{i}] items must be str, got {type(item).__name__}")
            validate_utf8(item, f"{name}[{i}]")


def validate_utf8(value: str, name: str) -> None:
    """Raise ``ValueError`` if *value* cannot be encoded as UTF-8 (lone surrogates)."""
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise ValueError(f"{name} must be valid UTF-8: {e.reason}") from None


def freeze_tags(tags: Any) -> tuple[tuple[str, ...], ...]:
    """Convert a list-of-lists tag structure into nested tuples."""
    return tuple(tuple(tag) for tag in tags)
