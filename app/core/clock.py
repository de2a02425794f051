"""
Clock & day bucket.

All "today" decisions in the engine go through a Clock so that the
one-check-in-per-day rule is evaluated on a single, fixed boundary:
UTC midnight. Check-in dates are compared as day buckets (`date`), never
as raw instants.
"""
from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta, timezone


def as_utc(instant: datetime) -> datetime:
    """Attach UTC to naive instants (SQLite returns timestamps without tzinfo)."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def bucket_of(instant: datetime) -> date:
    """Truncate an instant to its UTC calendar day. Naive instants are UTC."""
    return as_utc(instant).date()


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def hours_until_midnight(instant: datetime) -> int:
    """Whole hours (rounded up) left before the next UTC midnight."""
    instant = as_utc(instant)
    midnight = start_of_day(bucket_of(instant) + timedelta(days=1))
    return math.ceil((midnight - instant).total_seconds() / 3600)


class Clock:
    """System clock. The only place the engine reads wall time."""

    def now(self) -> datetime:
        return datetime.now(tz=timezone.utc)

    def today(self) -> date:
        return bucket_of(self.now())


class FixedClock(Clock):
    """Settable clock for tests and replays."""

    def __init__(self, instant: datetime):
        self.set(instant)

    def set(self, instant: datetime) -> None:
        self._now = as_utc(instant)

    def advance(self, **kwargs) -> None:
        self._now = self._now + timedelta(**kwargs)

    def now(self) -> datetime:
        return self._now
