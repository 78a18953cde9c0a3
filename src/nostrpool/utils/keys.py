"""Nostr key loading and event signing.

Keys and Schnorr signatures come from ``nostr-sdk``; this module adapts them
to the plain [Event][nostrpool.models.event.Event] model used by the client
layer. Bech32 (``nsec1``/``npub1``) handling stays inside ``Keys.parse`` at
the application boundary; the transport core only ever sees hex.

Warning:
    Private keys must **never** be stored in configuration files, source code,
    or logged. Load them from the environment or a secret store.

Examples:
    ```python
    keys = load_keys_from_env("NOSTR_PRIVATE_KEY")
    event = sign_event(keys, kind=1, content="hello", tags=[["t", "intro"]])
    trackers = pool.publish_many(urls, event)
    ```
"""

from __future__ import annotations

import json
import os
from collections.abc import Sequence
from typing import Any

from nostr_sdk import EventBuilder, Keys, Kind, Tag, Timestamp
from pydantic import BaseModel, Field, model_validator

from nostrpool.models.event import Event


ENV_PRIVATE_KEY = "NOSTR_PRIVATE_KEY"  # pragma: allowlist secret


def load_keys_from_env(env_var: str = ENV_PRIVATE_KEY) -> Keys:
    """Load Nostr keys from an environment variable (``nsec1`` or 64-char hex).

    Raises:
        ValueError: If the environment variable is not set or is empty.
        nostr_sdk.NostrSdkError: If the key value is malformed.
    """
    value = os.getenv(env_var)
    if not value:
        raise ValueError(f"{env_var} environment variable is required")
    return Keys.parse(value)


def sign_event(
    keys: Keys,
    kind: int,
    content: str,
    tags: Sequence[Sequence[str]] = (),
    created_at: int | None = None,
) -> Event:
    """Build, hash and sign an event with *keys*.

    Args:
        keys: Signing keys.
        kind: Event kind.
        content: Event content (already encrypted, for direct messages).
        tags: Tags, each a name followed by its arguments.
        created_at: Unix timestamp; defaults to now.

    Returns:
        The signed [Event][nostrpool.models.event.Event].
    """
    builder = EventBuilder(Kind(kind), content).tags([Tag.parse(list(tag)) for tag in tags])
    if created_at is not None:
        builder = builder.custom_created_at(Timestamp.from_secs(created_at))
    signed = builder.sign_with_keys(keys)
    return Event.from_dict(json.loads(signed.as_json()))


class KeysConfig(BaseModel):
    """Pydantic model that auto-loads Nostr keys from an environment variable.

    Warning:
        The ``keys`` field contains a live private key. Do not serialize
        this model to logs or persistent storage.
    """

    model_config = {"arbitrary_types_allowed": True}

    keys_env: str = Field(
        default=ENV_PRIVATE_KEY,
        min_length=1,
        description="Environment variable name for private key",
    )
    keys: Keys = Field(description="Keys loaded from keys_env (required)")

    @model_validator(mode="before")
    @classmethod
    def _load_keys_from_env(cls, data: Any) -> Any:
        if isinstance(data, dict) and "keys" not in data:
            data = {**data, "keys": load_keys_from_env(data.get("keys_env", ENV_PRIVATE_KEY))}
        return data
