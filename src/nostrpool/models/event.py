"""
Immutable Nostr event record.

An [Event][nostrpool.models.event.Event] is produced once by a client, signed,
and never mutated afterwards; relays and the
[Pool][nostrpool.client.pool.Pool] only observe and relay it. Construction
performs the cheap structural checks (field types, hex lengths, ranges).
The identifier binding and signature are checked separately by
[EventCodec][nostrpool.utils.codec.EventCodec], which keeps this module free
of cryptography.

See Also:
    [nostrpool.utils.codec][]: Canonical serialization, id computation and
        signature verification.
    [nostrpool.models.filter][]: Declarative predicates evaluated against events.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ._validation import (
    freeze_tags,
    validate_hex,
    validate_instance,
    validate_int,
    validate_tags,
    validate_utf8,
)
from .constants import (
    EVENT_ID_HEX_LENGTH,
    EVENT_KIND_MAX,
    PUBKEY_HEX_LENGTH,
    SIGNATURE_HEX_LENGTH,
)


_FIELDS: tuple[str, ...] = ("id", "pubkey", "created_at", "kind", "tags", "content", "sig")


@dataclass(frozen=True, slots=True)
class Event:
    """Immutable signed Nostr event.

    Attributes:
        id: 32-byte event id as 64 lowercase hex chars.
        pubkey: 32-byte x-only author public key as 64 lowercase hex chars.
        created_at: Unix timestamp in seconds.
        kind: Event kind (0..65535).
        tags: Ordered tags; each tag is its name followed by its arguments.
            Lists are accepted and frozen into nested tuples.
        content: Arbitrary string payload (may already be encrypted).
        sig: 64-byte Schnorr signature as 128 lowercase hex chars.

    Raises:
        TypeError: If a field has the wrong type.
        ValueError: If a field is out of range or not valid hex.

    Examples:
        ```python
        event = Event.from_dict(json.loads(raw))
        event.kind                   # 1
        event.get_tag_values("p")    # ['ab12...']
        event.to_json()              # compact JSON object
        ```

    Note:
        Events are hashable and compare by value, so they can be collected
        into sets. Two events with the same ``id`` but different fields can
        only exist if one of them is forged; the codec drops those.
    """

    id: str
    pubkey: str
    created_at: int
    kind: int
    tags: tuple[tuple[str, ...], ...]
    content: str
    sig: str

    def __post_init__(self) -> None:
        validate_hex(self.id, EVENT_ID_HEX_LENGTH, "id")
        validate_hex(self.pubkey, PUBKEY_HEX_LENGTH, "pubkey")
        validate_int(self.created_at, "created_at")
        validate_int(self.kind, "kind", maximum=EVENT_KIND_MAX)
        validate_tags(self.tags, "tags")
        validate_instance(self.content, str, "content")
        validate_utf8(self.content, "content")
        validate_hex(self.sig, SIGNATURE_HEX_LENGTH, "sig")
        object.__setattr__(self, "tags", freeze_tags(self.tags))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Event:
        """Build an event from its decoded JSON object.

        Raises:
            TypeError: If *data* is not a mapping or a field has the wrong type.
            ValueError: If a required field is missing or invalid.
        """
        validate_instance(data, Mapping, "event")
        missing = [name for name in _FIELDS if name not in data]
        if missing:
            raise ValueError(f"event is missing fields: {', '.join(missing)}")
        return cls(**{name: data[name] for name in _FIELDS})

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready object form (tags as lists)."""
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
            "sig": self.sig,
        }

    def to_json(self) -> str:
        """Return the compact JSON encoding used on the wire."""
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)

    def get_tag_values(self, name: str) -> list[str]:
        """Return the first argument of every tag named *name*, in order."""
        return [tag[1] for tag in self.tags if len(tag) > 1 and tag[0] == name]
