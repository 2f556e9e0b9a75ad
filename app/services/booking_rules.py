"""
Time rules shared by the availability and booking paths.

Both paths decide "is this start instant bookable right now?" through the
same BookingWindow so a slot that is offered can also be committed, and a
slot that cannot be committed is never offered.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def day_of_week(day: date) -> int:
    """Weekday number with 0=Sunday ... 6=Saturday."""
    return (day.weekday() + 1) % 7


def local_datetime(day: date, at: time, tz: tzinfo) -> datetime:
    """Aware datetime for a wall-clock time on a local calendar day."""
    return datetime.combine(day, at, tzinfo=tz)


def local_date(instant: datetime, tz: tzinfo) -> date:
    return instant.astimezone(tz).date()


def local_day_bounds(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """[start, end) of a local calendar day as aware datetimes."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start, end


@dataclass(frozen=True)
class BookingWindow:
    """How far ahead a booking may start: not too soon, not too far."""

    min_notice: timedelta
    horizon: timedelta

    def earliest(self, now: datetime) -> datetime:
        return now + self.min_notice

    def latest(self, now: datetime) -> datetime:
        return now + self.horizon

    def allows(self, start: datetime, now: datetime) -> bool:
        return self.earliest(now) <= start <= self.latest(now)
