from __future__ import annotations

import pytest

from nostr_sentinel.errors import InputValidationError, InvalidDuration
from nostr_sentinel.timeutils import dt_from_epoch_s, format_duration, parse_duration


@pytest.mark.parametrize("text,expected", [("30s", 30), ("5m", 300), ("1h", 3600), ("90", 90), (" 2m ", 120)])
def test_parse_duration(text: str, expected: int) -> None:
    assert parse_duration(text) == expected


@pytest.mark.parametrize("text", ["", "5x", "0s", "-5s", "1.5m", "m"])
def test_parse_duration_rejects(text: str) -> None:
    with pytest.raises(InvalidDuration):
        parse_duration(text)


def test_format_duration() -> None:
    assert format_duration(0) == "00:00:00"
    assert format_duration(3725) == "01:02:05"
    assert format_duration(-3) == "00:00:00"


def test_dt_from_epoch_s() -> None:
    assert dt_from_epoch_s(0, "UTC").year == 1970
    with pytest.raises(InputValidationError):
        dt_from_epoch_s(0, "Mars/Olympus")
