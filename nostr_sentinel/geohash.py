"""Geohash encode/decode (no external dependencies)."""

from __future__ import annotations

import math

from nostr_sentinel.errors import InvalidCoordinate, MalformedGeohash
from nostr_sentinel.models import check_precision

BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"
_DECODE_MAP = {c: i for i, c in enumerate(BASE32)}


def encode(lat: float, lon: float, precision: int) -> str:
    """Encode a coordinate into a geohash of ``precision`` characters.

    Args:
        lat: Latitude in decimal degrees, [-90, 90].
        lon: Longitude in decimal degrees, [-180, 180].
        precision: Output length, 1..12.

    Returns:
        Geohash string.

    Raises:
        InvalidPrecision: precision outside 1..12.
        InvalidCoordinate: latitude/longitude out of range or not finite.
    """

    check_precision(precision)
    if not (math.isfinite(lat) and -90.0 <= lat <= 90.0):
        raise InvalidCoordinate(f"latitude out of range: {lat!r}")
    if not (math.isfinite(lon) and -180.0 <= lon <= 180.0):
        raise InvalidCoordinate(f"longitude out of range: {lon!r}")

    lat_min, lat_max = -90.0, 90.0
    lon_min, lon_max = -180.0, 180.0
    even = True
    bit = 0
    ch = 0
    out: list[str] = []

    while len(out) < precision:
        if even:
            mid = (lon_min + lon_max) / 2.0
            if lon >= mid:
                ch = ch * 2 + 1
                lon_min = mid
            else:
                ch = ch * 2
                lon_max = mid
        else:
            mid = (lat_min + lat_max) / 2.0
            if lat >= mid:
                ch = ch * 2 + 1
                lat_min = mid
            else:
                ch = ch * 2
                lat_max = mid
        even = not even

        bit += 1
        if bit == 5:
            out.append(BASE32[ch])
            bit = 0
            ch = 0

    return "".join(out)


def decode_bbox(geohash: str) -> tuple[float, float, float, float]:
    """Return (lat_min, lat_max, lon_min, lon_max) of the geohash cell.

    Raises:
        MalformedGeohash: Empty input or a character outside the base-32 alphabet.
    """

    if not geohash:
        raise MalformedGeohash("geohash must be non-empty")

    lat_min, lat_max = -90.0, 90.0
    lon_min, lon_max = -180.0, 180.0
    even = True

    for c in geohash:
        try:
            cd = _DECODE_MAP[c]
        except KeyError as exc:
            raise MalformedGeohash(f"invalid geohash character {c!r} in {geohash!r}") from exc

        for mask in (16, 8, 4, 2, 1):
            if even:
                mid = (lon_min + lon_max) / 2.0
                if cd & mask:
                    lon_min = mid
                else:
                    lon_max = mid
            else:
                mid = (lat_min + lat_max) / 2.0
                if cd & mask:
                    lat_min = mid
                else:
                    lat_max = mid
            even = not even

    return lat_min, lat_max, lon_min, lon_max


def decode(geohash: str) -> tuple[float, float]:
    """Decode a geohash to the (lat, lon) centre of its cell."""

    lat_min, lat_max, lon_min, lon_max = decode_bbox(geohash)
    return (lat_min + lat_max) / 2.0, (lon_min + lon_max) / 2.0


def cell_size(precision: int) -> tuple[float, float]:
    """Return (lat_height, lon_width) in degrees of a cell at ``precision``.

    The decoded centre is at most half of each dimension away from any point
    inside the cell.
    """

    check_precision(precision)
    total_bits = 5 * precision
    lon_bits = (total_bits + 1) // 2
    lat_bits = total_bits // 2
    return 180.0 / (1 << lat_bits), 360.0 / (1 << lon_bits)
