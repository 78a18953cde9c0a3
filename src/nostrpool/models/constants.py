"""Shared constants for the models layer.

Defines the enumerations used by both the models and the client layers.
Placing them here avoids circular dependencies between
[nostrpool.models][nostrpool.models] and [nostrpool.client][nostrpool.client].

See Also:
    [nostrpool.client.messages][]: Encodes and decodes wire frames tagged
        with [MessageType][nostrpool.models.constants.MessageType].
    [nostrpool.models.relay][]: Uses [NetworkType][nostrpool.models.constants.NetworkType]
        to classify relay URLs during normalization.
"""

from __future__ import annotations

from enum import IntEnum, StrEnum


class MessageType(StrEnum):
    """First element of every wire frame exchanged with a relay.

    Attributes:
        EVENT: Client publishes an event, or relay delivers one to a subscription.
        REQ: Client opens a subscription (client to relay).
        CLOSE: Client closes a subscription (client to relay).
        EOSE: End of stored events for a subscription (relay to client).
        OK: Acknowledgment of a published event (relay to client).
        CLOSED: Relay-side termination of a subscription (relay to client).
        NOTICE: Human-readable diagnostic (relay to client).
        AUTH: NIP-42 challenge (relay to client) or signed answer (client to relay).
        COUNT: NIP-45 count request and response.
    """

    EVENT = "EVENT"
    REQ = "REQ"
    CLOSE = "CLOSE"
    EOSE = "EOSE"
    OK = "OK"
    CLOSED = "CLOSED"
    NOTICE = "NOTICE"
    AUTH = "AUTH"
    COUNT = "COUNT"


class NetworkType(StrEnum):
    """Network type enum for relay classification.

    Unlike a relay crawler, a client accepts local relays, so ``LOCAL`` is
    a valid classification on a constructed [RelayUrl][nostrpool.models.relay.RelayUrl].

    Attributes:
        CLEARNET: Public internet host.
        TOR: Tor hidden service identified by a ``.onion`` hostname.
        I2P: I2P eepsite identified by a ``.i2p`` hostname.
        LOKI: Lokinet service identified by a ``.loki`` hostname.
        LOCAL: Loopback, private or reserved address (including ``localhost``).
    """

    CLEARNET = "clearnet"
    TOR = "tor"
    I2P = "i2p"
    LOKI = "loki"
    LOCAL = "local"


class EventKind(IntEnum):
    """Well-known Nostr event kinds.

    Attributes:
        SET_METADATA: Kind 0 -- user profile metadata (NIP-01).
        TEXT_NOTE: Kind 1 -- short text note (NIP-01).
        RECOMMEND_RELAY: Kind 2 -- legacy relay recommendation (deprecated).
        CONTACTS: Kind 3 -- contact list with relay hints (NIP-02).
        ENCRYPTED_DIRECT_MESSAGE: Kind 4 -- NIP-04 direct message.
        DELETION: Kind 5 -- event deletion request (NIP-09).
        REACTION: Kind 7 -- reaction (NIP-25).
        RELAY_LIST: Kind 10002 -- NIP-65 relay list metadata.
        CLIENT_AUTH: Kind 22242 -- NIP-42 relay authentication.
    """

    SET_METADATA = 0
    TEXT_NOTE = 1
    RECOMMEND_RELAY = 2
    CONTACTS = 3
    ENCRYPTED_DIRECT_MESSAGE = 4
    DELETION = 5
    REACTION = 7
    RELAY_LIST = 10_002
    CLIENT_AUTH = 22_242


EVENT_KIND_MAX = 65_535

# Hex lengths of the fixed-size event fields
EVENT_ID_HEX_LENGTH = 64
PUBKEY_HEX_LENGTH = 64
SIGNATURE_HEX_LENGTH = 128
