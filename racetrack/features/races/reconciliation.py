"""
Daily distance reconciliation.

Health data arrives as per-day totals that may be late, duplicated, out of
order or under-reported by a device that lost connectivity. Merging keeps
the largest value ever seen for a day, so a day never moves backwards and
re-sending the same batch changes nothing.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable, Mapping

from racetrack.shared.time import to_naive_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DaySample:
    """One validated incoming sample."""

    day: date
    distance_km: float


@dataclass
class MergeResult:
    """Outcome of merging samples into a participant's history."""

    days: dict[date, float]
    gained_km: float = 0.0
    changed_days: list[date] = field(default_factory=list)

    @property
    def total_km(self) -> float:
        return total_distance(self.days.values())


def parse_day(value: Any) -> date | None:
    """
    Normalize a sample day to a UTC calendar date.

    Accepts date / datetime objects and ISO-8601 strings
    ("2024-01-01", "2024-01-01T23:30:00Z", "2024-01-01T23:30:00+02:00").
    Returns None for anything unparsable.
    """
    if isinstance(value, datetime):
        return to_naive_utc(value).date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None

    raw = value.strip()
    if raw.endswith("Z") or raw.endswith("z"):
        raw = raw[:-1] + "+00:00"
    try:
        return to_naive_utc(datetime.fromisoformat(raw)).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(raw)
    except ValueError:
        return None


def parse_distance(value: Any, max_km: float | None = None) -> float | None:
    """A finite, non-negative distance in km not above `max_km`, or None."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        distance = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(distance) or distance < 0:
        return None
    if max_km is not None and distance > max_km:
        return None
    return distance


def parse_samples(
    items: Iterable[Mapping[str, Any]],
    max_distance_km: float | None = None,
) -> tuple[list[DaySample], int]:
    """
    Validate raw batch items one by one.

    Each item needs a day under "date" (or "day") and a distance under
    "distanceKm" (or "distance_km"). Malformed items, including distances
    above `max_distance_km`, are skipped.

    Returns:
        (valid samples in input order, number of skipped items)
    """
    samples: list[DaySample] = []
    skipped = 0

    for item in items:
        if not isinstance(item, Mapping):
            skipped += 1
            continue

        day = parse_day(item.get("date", item.get("day")))
        distance = parse_distance(
            item.get("distanceKm", item.get("distance_km")), max_distance_km
        )
        if day is None or distance is None:
            skipped += 1
            logger.debug(f"Skipping malformed sample: {item!r}")
            continue

        samples.append(DaySample(day=day, distance_km=distance))

    return samples, skipped


def merge_daily_distances(
    existing: Mapping[date, float],
    samples: Iterable[DaySample],
) -> MergeResult:
    """
    Merge samples into a day → distance history.

    new = max(old, incoming) per day; gained_km sums max(0, new - old).
    The input mapping is not modified.
    """
    days = {day: float(distance or 0.0) for day, distance in existing.items()}
    result = MergeResult(days=days)

    for sample in samples:
        old = days.get(sample.day, 0.0)
        new = max(old, sample.distance_km)
        if sample.day not in days or new != old:
            days[sample.day] = new
        gained = max(0.0, new - old)
        if gained > 0:
            result.gained_km += gained
            result.changed_days.append(sample.day)

    return result


def total_distance(distances: Iterable[float]) -> float:
    """Sum of daily distances, recomputed from scratch."""
    return math.fsum(float(d or 0.0) for d in distances)


def has_reached_finish(total_km: float, race_distance_km: float) -> bool:
    return total_km >= race_distance_km
