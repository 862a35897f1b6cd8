# carematch/core/intervals.py
"""
Interval helpers shared by the availability store and the template engine.

All intervals are half-open: [start, end). Touching endpoints do not overlap.
"""
from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import TypeVar

UTC = timezone.utc

T = TypeVar("T", datetime, time)


def utcnow() -> datetime:
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Naive datetimes are taken to already be UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def aligned(instant: datetime | time, granularity_min: int = 30) -> bool:
    """True iff minutes are a multiple of the granularity and seconds/microseconds are zero."""
    return (
        instant.minute % granularity_min == 0
        and instant.second == 0
        and instant.microsecond == 0
    )


def overlaps(a_start: T, a_end: T, b_start: T, b_end: T) -> bool:
    return a_start < b_end and b_start < a_end


def day_of_week(d: date) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (d.weekday() + 1) % 7


def first_overlap(intervals: list[tuple[T, T]]) -> tuple[int, int] | None:
    """
    Indices (i, j) of the first overlapping pair in start-sorted order, or None.
    Sorting makes a single pass over neighbours sufficient.
    """
    order = sorted(range(len(intervals)), key=lambda i: intervals[i][0])
    for prev, nxt in zip(order, order[1:]):
        if intervals[prev][1] > intervals[nxt][0]:
            return prev, nxt
    return None
