"""Time parsing and formatting utilities."""

from __future__ import annotations

import re
import time
from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo

from nostr_sentinel.errors import InputValidationError, InvalidDuration

_DURATION_RE = re.compile(r"^(\d+)([smh]?)$")
_UNIT_SECONDS = {"": 1, "s": 1, "m": 60, "h": 3600}


def parse_duration(text: str) -> int:
    """Parse a duration like "30s", "5m", "1h" (or bare seconds "90").

    Args:
        text: Duration string ``<integer>[s|m|h]``.

    Returns:
        Duration in whole seconds (> 0).

    Raises:
        InvalidDuration: If text does not match the format or is zero.
    """

    s = text.strip()
    m = _DURATION_RE.match(s)
    if m is None:
        raise InvalidDuration(f"无效时长：{text!r}（格式：<整数>[s|m|h]，例如 30s / 5m / 1h）")
    seconds = int(m.group(1)) * _UNIT_SECONDS[m.group(2)]
    if seconds <= 0:
        raise InvalidDuration(f"时长必须大于 0：{text!r}")
    return seconds


def format_duration(seconds: float) -> str:
    s = int(round(max(0.0, seconds)))
    h = s // 3600
    m = (s % 3600) // 60
    sec = s % 60
    return f"{h:02d}:{m:02d}:{sec:02d}"


def tzinfo_from_name(tz_name: str) -> tzinfo:
    """Create tzinfo from an IANA timezone name.

    Raises:
        InputValidationError: If timezone name is invalid on this system.
    """

    try:
        return ZoneInfo(tz_name)
    except Exception as exc:  # ZoneInfo raises KeyError / ZoneInfoNotFoundError (platform dependent)
        raise InputValidationError(f"无效时区：{tz_name!r}。例如可用：UTC / Europe/Helsinki") from exc


def dt_from_epoch_s(epoch_s: int, tz_name: str) -> datetime:
    """Convert unix seconds (event ``created_at``) to a timezone-aware datetime."""

    return datetime.fromtimestamp(epoch_s, tz=tzinfo_from_name(tz_name))


def now_epoch_s() -> int:
    return int(time.time())
