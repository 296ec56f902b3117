"""Build the tag/content representation of a location.

Two wire forms exist:
  - kind 30472: location in plaintext tags, empty content
  - kind 30473: location serialized as a tag-pair JSON array, NIP-44 encrypted
    by the caller, carried in the content

Nothing here touches the crypto library: the encrypted form is produced in two
steps (plaintext payload, then envelope around the caller's ciphertext).
"""

from __future__ import annotations

import json
import math
from decimal import Decimal

from nostr_sentinel import geohash
from nostr_sentinel.models import TrackingConfig, check_precision, normalize_recipient
from nostr_sentinel.timeutils import now_epoch_s

Tags = list[list[str]]


def format_accuracy(accuracy: float) -> str:
    """Render accuracy the way peers do: 10.0 -> "10", 7.5 -> "7.5", 1e-7 -> "0.0000001".

    Shortest round-trip digits, always positional (never exponent notation).
    """

    value = float(accuracy)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    if value == int(value):
        return str(int(value))
    return format(Decimal(repr(value)), "f")


def _expiration(config: TrackingConfig, now: int | None) -> str:
    base = now_epoch_s() if now is None else int(now)
    return str(base + config.expiration_secs)


def build_public_payload(
    lat: float,
    lon: float,
    accuracy: float | None,
    config: TrackingConfig,
    *,
    now: int | None = None,
) -> tuple[str, Tags]:
    """Content and tags of a public (kind 30472) location event.

    Args:
        lat: Latitude in degrees.
        lon: Longitude in degrees.
        accuracy: Horizontal accuracy in meters, or None.
        config: Supplies precision, d tag and expiration TTL.
        now: Unix seconds used for the expiration tag (defaults to the clock).

    Returns:
        ("", [["g", hash], ["d", d_tag], ["expiration", ts], (["accuracy", v])])

    Raises:
        CodecError: The coordinate cannot be geohashed.
    """

    ghash = geohash.encode(lat, lon, config.precision)
    tags: Tags = [
        ["g", ghash],
        ["d", config.d_tag],
        ["expiration", _expiration(config, now)],
    ]
    if accuracy is not None:
        tags.append(["accuracy", format_accuracy(accuracy)])
    return "", tags


def payload_pairs(lat: float, lon: float, accuracy: float | None, precision: int) -> Tags:
    pairs: Tags = [["g", geohash.encode(lat, lon, check_precision(precision))]]
    if accuracy is not None:
        pairs.append(["accuracy", format_accuracy(accuracy)])
    return pairs


def build_encrypted_plaintext_payload(
    lat: float,
    lon: float,
    accuracy: float | None,
    precision: int,
) -> str:
    """Serialize the pre-encryption payload.

    The output is a compact JSON array of ``[name, value]`` pairs, geohash
    first and accuracy second if present, e.g. ``[["g","ud9wrf9k"],["accuracy","10"]]``.
    Order and formatting are part of the wire contract.
    """

    return json.dumps(payload_pairs(lat, lon, accuracy, precision), separators=(",", ":"))


def build_encrypted_envelope(
    ciphertext: str,
    recipient: str,
    config: TrackingConfig,
    *,
    now: int | None = None,
) -> tuple[str, Tags]:
    """Content and tags of an encrypted (kind 30473) location event.

    Raises:
        InvalidRecipient: recipient is not a hex public key.
    """

    pubkey = normalize_recipient(recipient)
    tags: Tags = [
        ["p", pubkey],
        ["d", config.d_tag],
        ["expiration", _expiration(config, now)],
    ]
    return ciphertext, tags
