from __future__ import annotations

import pytest

from nostr_sentinel import geohash
from nostr_sentinel.errors import CodecError, InputValidationError, InvalidCoordinate, InvalidPrecision, MalformedGeohash

_POINTS = [
    (60.17, 24.94),
    (57.64911, 10.40744),
    (-33.8688, 151.2093),
    (40.7128, -74.0060),
    (0.0, 0.0),
    (90.0, 180.0),
    (-90.0, -180.0),
]


def test_known_hashes() -> None:
    assert geohash.encode(57.64911, 10.40744, 11) == "u4pruydqqvj"
    assert geohash.encode(42.6, -5.6, 5) == "ezs42"


@pytest.mark.parametrize("lat,lon", _POINTS)
def test_length_matches_precision_and_decode_stays_in_cell(lat: float, lon: float) -> None:
    for p in range(1, 13):
        h = geohash.encode(lat, lon, p)
        assert len(h) == p
        lat_min, lat_max, lon_min, lon_max = geohash.decode_bbox(h)
        assert lat_min <= lat <= lat_max
        assert lon_min <= lon <= lon_max
        dlat, dlon = geohash.decode(h)
        lat_h, lon_w = geohash.cell_size(p)
        assert abs(dlat - lat) <= lat_h / 2 + 1e-12
        assert abs(dlon - lon) <= lon_w / 2 + 1e-12


def test_precision_is_monotonic() -> None:
    prev = None
    for p in range(1, 13):
        h = geohash.encode(60.17, 24.94, p)
        if prev is not None:
            assert h.startswith(prev)
            lat_min, lat_max, lon_min, lon_max = geohash.decode_bbox(h)
            plat_min, plat_max, plon_min, plon_max = geohash.decode_bbox(prev)
            assert plat_min <= lat_min and lat_max <= plat_max
            assert plon_min <= lon_min and lon_max <= plon_max
        prev = h


def test_precision_8_error_below_millidegree() -> None:
    lat, lon = geohash.decode(geohash.encode(60.1699, 24.9384, 8))
    assert abs(lat - 60.1699) < 0.001
    assert abs(lon - 24.9384) < 0.001


def test_encode_is_deterministic() -> None:
    assert geohash.encode(60.17, 24.94, 9) == geohash.encode(60.17, 24.94, 9)


@pytest.mark.parametrize("precision", [0, 13, -1])
def test_invalid_precision(precision: int) -> None:
    with pytest.raises(InvalidPrecision) as ei:
        geohash.encode(60.17, 24.94, precision)
    assert isinstance(ei.value, CodecError)
    assert isinstance(ei.value, InputValidationError)


def test_invalid_coordinate() -> None:
    with pytest.raises(InvalidCoordinate):
        geohash.encode(91.0, 0.0, 5)
    with pytest.raises(InvalidCoordinate):
        geohash.encode(0.0, float("nan"), 5)


@pytest.mark.parametrize("bad", ["", "abc", "u4pa", "u4pi", "u4 p", "U4PRU"])
def test_malformed_geohash(bad: str) -> None:
    with pytest.raises(MalformedGeohash):
        geohash.decode(bad)


def test_cell_size_shrinks() -> None:
    sizes = [geohash.cell_size(p) for p in range(1, 13)]
    for (a_lat, a_lon), (b_lat, b_lon) in zip(sizes, sizes[1:]):
        assert b_lat <= a_lat and b_lon < a_lon


def test_decode_accepts_hashes_longer_than_encode_precision() -> None:
    long_hash = "u4pruydqqvjxy"
    assert len(long_hash) == 13
    lat, lon = geohash.decode(long_hash)
    ref_lat, ref_lon = geohash.decode(long_hash[:12])
    assert abs(lat - ref_lat) < 1e-6
    assert abs(lon - ref_lon) < 1e-6
    # the 13th character only narrows the 12-character cell
    lat_min, lat_max, lon_min, lon_max = geohash.decode_bbox(long_hash[:12])
    assert lat_min <= lat <= lat_max
    assert lon_min <= lon <= lon_max
