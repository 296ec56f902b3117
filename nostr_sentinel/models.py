"""Data models for location events, tracking config and received events."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Final, Mapping, Sequence

from nostr_sentinel.errors import InvalidConfig, InvalidPrecision, InvalidRecipient

KIND_PUBLIC_LOCATION: Final[int] = 30472
KIND_ENCRYPTED_LOCATION: Final[int] = 30473
LOCATION_KINDS: Final[tuple[int, int]] = (KIND_PUBLIC_LOCATION, KIND_ENCRYPTED_LOCATION)

MAX_PRECISION: Final[int] = 12
DEFAULT_RELAY: Final[str] = "wss://zooid.atlantislabs.space"
DEFAULT_TZ: Final[str] = "UTC"

HEX_PUBKEY_RE: Final[re.Pattern[str]] = re.compile(r"^[0-9a-fA-F]{64}\Z")


class Visibility(str, Enum):
    PUBLIC = "public"
    ENCRYPTED = "encrypted"


def check_precision(precision: object) -> int:
    """Return precision unchanged if it is an int in 1..MAX_PRECISION.

    Raises:
        InvalidPrecision: Out of range or not an integer. Never clamps.
    """

    if isinstance(precision, bool) or not isinstance(precision, int):
        raise InvalidPrecision(precision, MAX_PRECISION)
    if precision < 1 or precision > MAX_PRECISION:
        raise InvalidPrecision(precision, MAX_PRECISION)
    return precision


def normalize_recipient(recipient: object) -> str:
    """Validate a hex public key and return it lowercased.

    Raises:
        InvalidRecipient: Not 64 hex characters.
    """

    if not isinstance(recipient, str) or HEX_PUBKEY_RE.match(recipient) is None:
        raise InvalidRecipient(f"recipient must be a 64-char hex public key, got {recipient!r}")
    return recipient.lower()


@dataclass(frozen=True, slots=True)
class TrackingConfig:
    """Settings for publishing location events.

    Attributes:
        interval_secs: Seconds between publishes when replaying a track.
        precision: Geohash length (1-12); bounds the spatial resolution.
        encrypted: Publish kind 30473 (NIP-44) instead of kind 30472.
        recipient_pubkeys: Hex pubkeys; non-empty iff ``encrypted``.
        relays: Relay URLs, non-empty.
        d_tag: Identifier of the tracked device (e.g. "phone", "car").
        expiration_secs: TTL added to the current time for the expiration tag.
    """

    interval_secs: int = 60
    precision: int = 8
    encrypted: bool = False
    recipient_pubkeys: tuple[str, ...] = ()
    relays: tuple[str, ...] = (DEFAULT_RELAY,)
    d_tag: str = "default"
    expiration_secs: int = 3600

    def __post_init__(self) -> None:
        check_precision(self.precision)
        # lists from JSON/argparse are frozen into tuples
        object.__setattr__(self, "recipient_pubkeys", tuple(normalize_recipient(r) for r in self.recipient_pubkeys))
        object.__setattr__(self, "relays", tuple(self.relays))
        if self.encrypted and not self.recipient_pubkeys:
            raise InvalidConfig("encrypted tracking needs at least one recipient pubkey")
        if self.recipient_pubkeys and not self.encrypted:
            raise InvalidConfig("recipient pubkeys are only used with encrypted tracking")
        if not self.relays:
            raise InvalidConfig("at least one relay URL is required")
        if self.interval_secs <= 0:
            raise InvalidConfig(f"interval_secs must be > 0, got {self.interval_secs!r}")
        if self.expiration_secs <= 0:
            raise InvalidConfig(f"expiration_secs must be > 0, got {self.expiration_secs!r}")


@dataclass(frozen=True, slots=True)
class TrackPoint:
    """A single location sample to publish.

    Attributes:
        geo_time_ms: Unix epoch milliseconds of the fix.
        latitude: Latitude in decimal degrees.
        longitude: Longitude in decimal degrees.
        horizontal_accuracy_m: Horizontal accuracy in meters; exports use -1.0
            when unknown.
    """

    geo_time_ms: int
    latitude: float
    longitude: float
    horizontal_accuracy_m: float = -1.0

    @property
    def accuracy(self) -> float | None:
        """Accuracy in meters, None for the export's negative sentinel."""

        return self.horizontal_accuracy_m if self.horizontal_accuracy_m >= 0 else None


@dataclass(frozen=True, slots=True)
class LocationRecord:
    """A location recovered from the wire.

    Note:
        ``lat``/``lon`` are the centre of the geohash cell, not the publisher's
        original coordinate.
    """

    geohash: str
    lat: float
    lon: float
    accuracy: float | None
    d_tag: str
    timestamp: int
    visibility: Visibility
    kind: int
    pubkey: str = ""

    @property
    def encrypted(self) -> bool:
        return self.visibility is Visibility.ENCRYPTED


@dataclass(frozen=True, slots=True)
class EventTemplate:
    """An unsigned event ready to be handed to a signer."""

    kind: int
    content: str
    tags: tuple[tuple[str, ...], ...]

    def tag_value(self, name: str) -> str | None:
        return find_tag_value(self.tags, name)

    @property
    def identifier(self) -> str | None:
        return self.tag_value("d")

    @property
    def expiration(self) -> int | None:
        value = self.tag_value("expiration")
        return int(value) if value is not None else None

    @property
    def recipient(self) -> str | None:
        return self.tag_value("p")

    def to_dict(self) -> dict[str, Any]:
        """Unsigned template JSON shape: {kind, content, tags}."""

        return {"kind": self.kind, "content": self.content, "tags": [list(t) for t in self.tags]}


@dataclass(frozen=True, slots=True)
class ReceivedEvent:
    """A signed event as delivered by a relay (NIP-01 fields we use)."""

    kind: int
    content: str = ""
    tags: tuple[tuple[str, ...], ...] = ()
    pubkey: str = ""
    created_at: int = 0
    id: str = ""
    sig: str = field(default="", repr=False)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ReceivedEvent":
        tags = tuple(tuple(str(v) for v in t) for t in raw.get("tags", ()) or ())
        return cls(
            kind=int(raw["kind"]),
            content=str(raw.get("content", "") or ""),
            tags=tags,
            pubkey=str(raw.get("pubkey", "") or ""),
            created_at=int(raw.get("created_at", 0) or 0),
            id=str(raw.get("id", "") or ""),
            sig=str(raw.get("sig", "") or ""),
        )

    def tag_value(self, name: str) -> str | None:
        return find_tag_value(self.tags, name)


def find_tag_value(tags: Sequence[Sequence[str]], name: str) -> str | None:
    """Return the value of the first tag named ``name`` that carries a value."""

    for tag in tags:
        if len(tag) >= 2 and tag[0] == name:
            return tag[1]
    return None
