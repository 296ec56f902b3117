"""Read exported track files (Path.csv) as samples for the publisher."""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from nostr_sentinel.models import TrackPoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CsvSummary:
    """Quick summary of CSV parsing."""

    rows_total: int
    rows_parsed: int
    rows_skipped: int
    fieldnames: Sequence[str]


def _parse_int(value: str) -> int:
    return int(value.strip())


def _parse_float(value: str) -> float:
    return float(value.strip())


def load_track_points(csv_path: str | Path) -> tuple[list[TrackPoint], CsvSummary]:
    """Load all samples, sorted by time.

    Args:
        csv_path: Path to the exported CSV. Required columns are geoTime
            (epoch ms), latitude and longitude; horizontalAccuracy is optional.

    Returns:
        (points, summary)

    Raises:
        KeyError: A required column is missing from the header.
    """

    p = Path(csv_path)
    rows_total = 0
    parsed: list[TrackPoint] = []

    with p.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        fieldnames: Sequence[str] = reader.fieldnames or ()
        missing = [c for c in ("geoTime", "latitude", "longitude") if c not in fieldnames]
        if missing:
            raise KeyError(f"CSV缺少必要字段：{missing}. 实际字段：{list(fieldnames)}")

        for row in reader:
            rows_total += 1
            try:
                parsed.append(
                    TrackPoint(
                        geo_time_ms=_parse_int(row["geoTime"]),
                        latitude=_parse_float(row["latitude"]),
                        longitude=_parse_float(row["longitude"]),
                        horizontal_accuracy_m=_parse_float(row.get("horizontalAccuracy", "-1") or "-1"),
                    )
                )
            except (ValueError, TypeError, AttributeError):
                # 某些行可能损坏/空行，直接跳过
                continue

    parsed.sort(key=lambda pt: pt.geo_time_ms)
    summary = CsvSummary(
        rows_total=rows_total,
        rows_parsed=len(parsed),
        rows_skipped=rows_total - len(parsed),
        fieldnames=fieldnames,
    )
    if summary.rows_skipped > 0:
        logger.warning("CSV中有 %s 行解析失败已跳过", summary.rows_skipped)
    return parsed, summary
