"""Minute-of-day interval arithmetic used by the availability engine.

All intervals are half-open ``[start, end)`` minutes since midnight within a
single calendar day (0..1440). Spans crossing midnight are handled by the
callers, one day at a time.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

from ...shared.validators import format_time_of_day
from .errors import ValidationError

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True, order=True)
class TimeInterval:
    start: int
    end: int

    def __post_init__(self):
        if self.start < 0 or self.end > MINUTES_PER_DAY:
            raise ValidationError(
                f"Interval {self.start}-{self.end} is outside the day (0-{MINUTES_PER_DAY})",
                start=self.start,
                end=self.end,
            )
        if self.start >= self.end:
            raise ValidationError(
                f"Interval start must be before end (got {self.start}-{self.end})",
                start=self.start,
                end=self.end,
            )

    @property
    def duration_minutes(self) -> int:
        return self.end - self.start

    def contains(self, point: int) -> bool:
        return self.start <= point < self.end

    def covers(self, other: TimeInterval) -> bool:
        """True when ``other`` lies fully inside this interval"""
        return self.start <= other.start and other.end <= self.end

    def overlaps(self, other: TimeInterval) -> bool:
        # Touching intervals (a.end == b.start) do not overlap
        return self.start < other.end and other.start < self.end

    def intersect(self, other: TimeInterval) -> Optional[TimeInterval]:
        return intersect(self, other)

    def subtract(self, obstacles: Iterable[TimeInterval]) -> list[TimeInterval]:
        return subtract(self, obstacles)

    def __str__(self) -> str:
        return f"{minutes_to_time(self.start)}-{minutes_to_time(self.end)}"


def intersect(a: TimeInterval, b: TimeInterval) -> Optional[TimeInterval]:
    """Overlapping part of ``a`` and ``b``, or None"""
    start = max(a.start, b.start)
    end = min(a.end, b.end)
    if start >= end:
        return None
    return TimeInterval(start, end)


def subtract(interval: TimeInterval, obstacles: Iterable[TimeInterval]) -> list[TimeInterval]:
    """Remaining pieces of ``interval`` after removing every obstacle.

    Obstacles may overlap each other and need not be sorted.
    """
    remaining = []
    cursor = interval.start
    for obstacle in sorted(obstacles):
        if obstacle.start >= interval.end:
            break
        if obstacle.end <= cursor:
            continue
        if obstacle.start > cursor:
            remaining.append(TimeInterval(cursor, obstacle.start))
        cursor = max(cursor, obstacle.end)
        if cursor >= interval.end:
            break
    if cursor < interval.end:
        remaining.append(TimeInterval(cursor, interval.end))
    return remaining


def subtract_all(
    intervals: Iterable[TimeInterval], obstacles: Iterable[TimeInterval]
) -> list[TimeInterval]:
    obstacles = list(obstacles)
    result = []
    for interval in sorted(intervals):
        result.extend(subtract(interval, obstacles))
    return result


def merge(intervals: Iterable[TimeInterval]) -> list[TimeInterval]:
    """Sorted union; overlapping or touching intervals are joined"""
    merged: list[TimeInterval] = []
    for interval in sorted(intervals):
        if merged and interval.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = TimeInterval(last.start, max(last.end, interval.end))
        else:
            merged.append(interval)
    return merged


def intersect_all(
    intervals: Iterable[TimeInterval], bounds: Iterable[TimeInterval]
) -> list[TimeInterval]:
    """Parts of ``intervals`` that fall inside any of ``bounds``"""
    bounds = list(bounds)
    pieces = []
    for interval in intervals:
        for bound in bounds:
            piece = intersect(interval, bound)
            if piece:
                pieces.append(piece)
    return merge(pieces)


def day_of_week(day: date) -> int:
    """0 = Sunday ... 6 = Saturday"""
    return (day.weekday() + 1) % 7


def minutes_to_time(minutes: int) -> str:
    """540 -> '09:00'"""
    return format_time_of_day(minutes)


def at_minutes(day: date, minutes: int) -> datetime:
    """Wall-clock datetime for ``minutes`` after midnight of ``day`` (1440 = next midnight)"""
    return datetime.combine(day, time.min) + timedelta(minutes=minutes)


def clip_to_day(start: datetime, end: datetime, day: date) -> Optional[TimeInterval]:
    """The part of the datetime span ``[start, end)`` falling on ``day``"""
    day_start = datetime.combine(day, time.min)
    day_end = day_start + timedelta(days=1)
    clipped_start = max(start, day_start)
    clipped_end = min(end, day_end)
    if clipped_start >= clipped_end:
        return None
    start_minutes = int((clipped_start - day_start).total_seconds() // 60)
    # Round partial minutes outwards so the block is never shortened
    end_seconds = (clipped_end - day_start).total_seconds()
    end_minutes = int(-(-end_seconds // 60))
    if start_minutes >= end_minutes:
        return None
    return TimeInterval(start_minutes, min(end_minutes, MINUTES_PER_DAY))


def align_up(minutes: int, step: int) -> int:
    """Round ``minutes`` up to the next multiple of ``step``"""
    return -(-minutes // step) * step


def daterange(start: date, days: int) -> list[date]:
    return [start + timedelta(days=offset) for offset in range(days)]
