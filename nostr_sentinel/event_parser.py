"""Turn received location events back into LocationRecord objects."""

from __future__ import annotations

import json
import re
from typing import Any, Sequence

from nostr_sentinel import geohash
from nostr_sentinel.errors import MalformedPayload, MissingTag, WrongKind
from nostr_sentinel.models import (
    KIND_ENCRYPTED_LOCATION,
    KIND_PUBLIC_LOCATION,
    LocationRecord,
    ReceivedEvent,
    Visibility,
    find_tag_value,
)

# strict decimal float: no underscores, no surrounding whitespace
_FLOAT_RE = re.compile(r"[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf|infinity|nan)", re.IGNORECASE)


def _lenient_float(value: str | None) -> float | None:
    # a malformed optional field counts as absent
    if value is None or _FLOAT_RE.fullmatch(value) is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _record(
    event: ReceivedEvent,
    ghash: str,
    accuracy: float | None,
    visibility: Visibility,
) -> LocationRecord:
    lat, lon = geohash.decode(ghash)
    return LocationRecord(
        geohash=ghash,
        lat=lat,
        lon=lon,
        accuracy=accuracy,
        d_tag=event.tag_value("d") or "",
        timestamp=event.created_at,
        visibility=visibility,
        kind=event.kind,
        pubkey=event.pubkey,
    )


def parse_public_record(event: ReceivedEvent) -> LocationRecord:
    """Parse a kind 30472 event.

    Raises:
        WrongKind: Not a public location event.
        MissingTag: No ``g`` tag.
        CodecError: The geohash does not decode.
    """

    if event.kind != KIND_PUBLIC_LOCATION:
        raise WrongKind(KIND_PUBLIC_LOCATION, event.kind)
    ghash = event.tag_value("g")
    if ghash is None:
        raise MissingTag("g")
    accuracy = _lenient_float(event.tag_value("accuracy"))
    return _record(event, ghash, accuracy, Visibility.PUBLIC)


def parse_payload_pairs(plaintext: str) -> list[list[str]]:
    """Parse the decrypted tag-pair array.

    Raises:
        MalformedPayload: Not a JSON array of string arrays.
    """

    try:
        data: Any = json.loads(plaintext)
    except (json.JSONDecodeError, TypeError) as exc:
        raise MalformedPayload(f"decrypted payload is not JSON: {exc}") from exc

    if not isinstance(data, list):
        raise MalformedPayload(f"decrypted payload must be a JSON array, got {type(data).__name__}")
    for item in data:
        if not isinstance(item, list) or not all(isinstance(v, str) for v in item):
            raise MalformedPayload(f"decrypted payload entries must be string arrays, got {item!r}")
    return data


def parse_encrypted_record(event: ReceivedEvent, decrypted_plaintext: str) -> LocationRecord:
    """Parse a kind 30473 event given its already-decrypted content.

    The event's own tags supply ``d``; the plaintext supplies ``g`` and
    ``accuracy``.

    Raises:
        WrongKind: Not an encrypted location event.
        MalformedPayload: Plaintext is not the canonical tag-pair array.
        MissingTag: The plaintext carries no ``g`` pair.
        CodecError: The geohash does not decode.
    """

    if event.kind != KIND_ENCRYPTED_LOCATION:
        raise WrongKind(KIND_ENCRYPTED_LOCATION, event.kind)
    pairs: Sequence[Sequence[str]] = parse_payload_pairs(decrypted_plaintext)
    ghash = find_tag_value(pairs, "g")
    if ghash is None:
        raise MissingTag("g")
    accuracy = _lenient_float(find_tag_value(pairs, "accuracy"))
    return _record(event, ghash, accuracy, Visibility.ENCRYPTED)
