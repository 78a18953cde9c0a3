"""
Canonical event serialization, id computation and verification.

Every inbound event passes through
[EventCodec.decode()][nostrpool.utils.codec.EventCodec.decode] before it
reaches a subscription callback or a query result. Checks run cheapest
first so that malformed-input flooding is rejected before any cryptography:

1. [validate_structure()][nostrpool.utils.codec.EventCodec.validate_structure]:
   field presence, types, hex lengths and ranges.
2. Id binding: ``sha256`` of the canonical serialization must equal ``id``.
3. Schnorr signature over ``id`` under ``pubkey`` (``nostr-sdk``).

The canonical serialization is the JSON array
``[0, pubkey, created_at, kind, tags, content]`` with no whitespace and
non-ASCII characters left unescaped, UTF-8 encoded. It must be byte-exact
across implementations.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Callable, Sequence
from typing import Any

from nostr_sdk import Event as NostrEvent
from nostr_sdk import NostrSdkError

from nostrpool.core.exceptions import EventValidationError
from nostrpool.core.logger import Logger
from nostrpool.models.event import Event


SignatureVerifier = Callable[[Event], bool]

logger = Logger("nostrpool.codec")


def serialize(
    pubkey: str,
    created_at: int,
    kind: int,
    tags: Sequence[Sequence[str]],
    content: str,
) -> str:
    """Return the canonical serialization used to compute event ids."""
    return json.dumps(
        [0, pubkey, created_at, kind, [list(tag) for tag in tags], content],
        separators=(",", ":"),
        ensure_ascii=False,
    )


def compute_id(
    pubkey: str,
    created_at: int,
    kind: int,
    tags: Sequence[Sequence[str]],
    content: str,
) -> str:
    """Return the hex sha256 digest of the canonical serialization."""
    data = serialize(pubkey, created_at, kind, tags, content)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def verify_schnorr(event: Event) -> bool:
    """Verify ``event.sig`` over ``event.id`` with ``nostr-sdk``.

    Returns False instead of raising for any malformed key or signature.
    """
    try:
        return bool(NostrEvent.from_json(event.to_json()).verify())
    except (NostrSdkError, ValueError):
        return False


class EventCodec:
    """Validates and verifies events received from relays.

    Pure apart from the signature check, which is delegated to *verifier*.

    Args:
        verifier: Callable returning True if the event signature is valid.
            Defaults to [verify_schnorr][nostrpool.utils.codec.verify_schnorr].
        skip_verification: Skip the id and signature checks and trust the
            relay (structural checks still run). Only for trusted relays.

    Examples:
        ```python
        codec = EventCodec()
        event = codec.decode(raw)      # Event, or None if invalid
        codec.verify(event)            # True
        ```
    """

    __slots__ = ("_skip_verification", "_verifier")

    def __init__(
        self,
        verifier: SignatureVerifier | None = None,
        *,
        skip_verification: bool = False,
    ) -> None:
        self._verifier = verifier or verify_schnorr
        self._skip_verification = skip_verification

    @staticmethod
    def compute_id(event: Event) -> str:
        """Recompute the id of *event* from its signed fields."""
        return compute_id(event.pubkey, event.created_at, event.kind, event.tags, event.content)

    @staticmethod
    def validate_structure(raw: Any) -> Event:
        """Check field presence, types and ranges, without cryptography.

        Raises:
            EventValidationError: If *raw* is not a well-formed event object.
        """
        try:
            return Event.from_dict(raw)
        except (TypeError, ValueError) as e:
            raise EventValidationError(str(e)) from e

    def verify(self, event: Event) -> bool:
        """Return True if the id matches the content and the signature is valid."""
        if self.compute_id(event) != event.id:
            return False
        return self._verifier(event)

    def authenticate(self, event: Event) -> bool:
        """Return True if *event* may be trusted, honoring ``skip_verification``."""
        if self._skip_verification:
            return True
        if not self.verify(event):
            logger.debug("event_verification_failed", event_id=event.id)
            return False
        return True

    def decode(self, raw: Any) -> Event | None:
        """Return the validated event, or None if any check fails."""
        try:
            event = self.validate_structure(raw)
        except EventValidationError as e:
            logger.debug("event_malformed", error=e)
            return None
        return event if self.authenticate(event) else None
