"""
Wire frame encoding and decoding.

Every frame is a JSON array whose first element is a
[MessageType][nostrpool.models.constants.MessageType] tag.

Client to relay: ``["REQ", sub_id, filter...]``, ``["CLOSE", sub_id]``,
``["EVENT", event]``, ``["AUTH", event]``, ``["COUNT", sub_id, filter...]``.

Relay to client: ``["EVENT", sub_id, event]``, ``["EOSE", sub_id]``,
``["OK", event_id, accepted, message]``, ``["CLOSED", sub_id, message]``,
``["NOTICE", message]``, ``["AUTH", challenge]``,
``["COUNT", sub_id, {"count": n}]``.

[decode_relay_message][nostrpool.client.messages.decode_relay_message] raises
``ProtocolError`` for malformed frames and returns None for unknown tags so
newer relays stay compatible.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any, NamedTuple

from nostrpool.core.exceptions import ProtocolError
from nostrpool.models.constants import MessageType
from nostrpool.models.event import Event
from nostrpool.models.filter import Filter


class RelayEvent(NamedTuple):
    sub_id: str
    raw_event: Any


class RelayEose(NamedTuple):
    sub_id: str


class RelayOk(NamedTuple):
    event_id: str
    accepted: bool
    message: str


class RelayClosed(NamedTuple):
    sub_id: str
    message: str


class RelayNotice(NamedTuple):
    message: str


class RelayAuth(NamedTuple):
    challenge: str


class RelayCount(NamedTuple):
    sub_id: str
    count: int


RelayMessage = RelayEvent | RelayEose | RelayOk | RelayClosed | RelayNotice | RelayAuth | RelayCount


def _dumps(frame: list[Any]) -> str:
    return json.dumps(frame, separators=(",", ":"), ensure_ascii=False)


def encode_req(sub_id: str, filters: Iterable[Filter]) -> str:
    return _dumps([MessageType.REQ.value, sub_id, *(f.to_dict() for f in filters)])


def encode_close(sub_id: str) -> str:
    return _dumps([MessageType.CLOSE.value, sub_id])


def encode_event(event: Event) -> str:
    return _dumps([MessageType.EVENT.value, event.to_dict()])


def encode_auth(event: Event) -> str:
    return _dumps([MessageType.AUTH.value, event.to_dict()])


def encode_count(sub_id: str, filters: Iterable[Filter]) -> str:
    return _dumps([MessageType.COUNT.value, sub_id, *(f.to_dict() for f in filters)])


def _expect_str(frame: list[Any], index: int, tag: str) -> str:
    if len(frame) <= index or not isinstance(frame[index], str):
        raise ProtocolError(f"{tag} frame element {index} must be a string")
    return frame[index]


def _optional_str(frame: list[Any], index: int) -> str:
    # Some relays omit the trailing message or send null
    if len(frame) > index and isinstance(frame[index], str):
        return frame[index]
    return ""


def decode_relay_message(text: str) -> RelayMessage | None:
    """Parse one relay-to-client frame.

    Returns:
        The typed message, or None for an unrecognized tag.

    Raises:
        ProtocolError: If *text* is not JSON, not a non-empty array, or the
            frame has the wrong arity or element types for its tag.
    """
    try:
        frame = json.loads(text)
    except (ValueError, RecursionError) as e:
        # JSONDecodeError, oversized integer literals and excessive nesting
        raise ProtocolError(f"invalid JSON: {e}") from e

    if not isinstance(frame, list) or not frame or not isinstance(frame[0], str):
        raise ProtocolError("frame must be a non-empty array starting with a string tag")

    tag = frame[0]

    if tag == MessageType.EVENT:
        sub_id = _expect_str(frame, 1, tag)
        if len(frame) < 3:
            raise ProtocolError("EVENT frame is missing the event")
        return RelayEvent(sub_id, frame[2])

    if tag == MessageType.EOSE:
        return RelayEose(_expect_str(frame, 1, tag))

    if tag == MessageType.OK:
        event_id = _expect_str(frame, 1, tag)
        if len(frame) < 3 or not isinstance(frame[2], bool):
            raise ProtocolError("OK frame element 2 must be a boolean")
        return RelayOk(event_id, frame[2], _optional_str(frame, 3))

    if tag == MessageType.CLOSED:
        return RelayClosed(_expect_str(frame, 1, tag), _optional_str(frame, 2))

    if tag == MessageType.NOTICE:
        return RelayNotice(_optional_str(frame, 1))

    if tag == MessageType.AUTH:
        return RelayAuth(_expect_str(frame, 1, tag))

    if tag == MessageType.COUNT:
        sub_id = _expect_str(frame, 1, tag)
        payload = frame[2] if len(frame) > 2 else None
        count = payload.get("count") if isinstance(payload, dict) else None
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise ProtocolError("COUNT frame must carry a non-negative integer count")
        return RelayCount(sub_id, count)

    return None
