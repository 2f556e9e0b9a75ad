"""
Availability calculator.

``compute_availability`` is a pure function: given one day's schedule, the
closure (if any) and a snapshot of confirmed bookings it returns the slots
that can still take a party of the requested size. ``AvailabilityService``
only gathers that input from the store.

Slot generation, for each active window of the weekday:

1.  Candidate starts run from ``start_time`` in ``slot_interval`` steps up
    to and including ``last_booking_time``.
2.  Candidates outside the booking window (too soon, too far ahead) are
    dropped. Enumeration starts at ``start_time`` so the first survivor is
    always on a slot boundary.
3.  Every candidate ``s`` occupies ``[s, s + meal_duration)``; confirmed
    bookings of the same service overlapping that interval consume capacity.
4.  Slots with less room than the party are omitted, not flagged.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from datetime import date, datetime, timedelta, timezone, tzinfo

from app.db import ReservationStore
from app.models import (
    AvailabilityResponse,
    Booking,
    Closure,
    ServiceAvailability,
    ServiceWindow,
    Slot,
)
from app.services.booking_rules import (
    BookingWindow,
    day_of_week,
    local_date,
    local_datetime,
    local_day_bounds,
    utcnow,
)

logger = logging.getLogger(__name__)

CLOSED_DATE_MESSAGE = "Restaurant closed on this date"
CLOSED_DAY_MESSAGE = "Restaurant closed on this day"


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval overlap: touching intervals do not overlap."""
    return a_start < b_end and a_end > b_start


def candidate_starts(window: ServiceWindow, day: date, tz: tzinfo) -> Iterator[datetime]:
    """Slot starts of a window on a day, ``last_booking_time`` included."""
    current = local_datetime(day, window.start_time, tz)
    last = local_datetime(day, window.last_booking_time, tz)
    step = timedelta(minutes=window.slot_interval)
    while current <= last:
        yield current
        current += step


def capacity_taken(
    window: ServiceWindow,
    start: datetime,
    end: datetime,
    bookings: Iterable[Booking],
) -> int:
    return sum(
        b.party_size
        for b in bookings
        if b.service_name == window.name
        and b.status == "confirmed"
        and overlaps(b.start_at, b.end_at, start, end)
    )


def compute_availability(
    day: date,
    party_size: int,
    *,
    windows: list[ServiceWindow],
    closure: Closure | None,
    bookings: list[Booking],
    now: datetime,
    tz: tzinfo,
    booking_window: BookingWindow,
) -> AvailabilityResponse:
    """Bookable slots per service for ``party_size`` guests on ``day``."""
    if closure is not None:
        message = CLOSED_DATE_MESSAGE
        if closure.reason:
            message = f"{message}: {closure.reason}"
        return AvailabilityResponse(date=day, closed=True, message=message)

    active = [w for w in windows if w.is_active and w.day_of_week == day_of_week(day)]
    if not active:
        return AvailabilityResponse(date=day, closed=True, message=CLOSED_DAY_MESSAGE)

    services: list[ServiceAvailability] = []
    for window in sorted(active, key=lambda w: w.start_time):
        meal = timedelta(minutes=window.meal_duration)
        slots: list[Slot] = []
        for start in candidate_starts(window, day, tz):
            if not booking_window.allows(start, now):
                continue
            available = window.capacity - capacity_taken(window, start, start + meal, bookings)
            if available >= party_size:
                slots.append(
                    Slot(
                        start_at=start.astimezone(timezone.utc),
                        available_capacity=available,
                    )
                )
        services.append(
            ServiceAvailability(
                name=window.name,
                display_name=window.display_name,
                slots=slots,
            )
        )

    return AvailabilityResponse(date=day, services=services)


class AvailabilityService:
    """Reads a schedule + bookings snapshot and runs the calculator."""

    def __init__(
        self,
        store: ReservationStore,
        *,
        tz: tzinfo,
        booking_window: BookingWindow,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._tz = tz
        self._booking_window = booking_window
        self._clock = clock

    def today(self) -> date:
        """Current calendar date in the restaurant timezone."""
        return local_date(self._clock(), self._tz)

    async def get(self, day: date, party_size: int) -> AvailabilityResponse:
        closure = await self._store.get_closure(day)
        windows: list[ServiceWindow] = []
        bookings: list[Booking] = []
        if closure is None:
            windows = await self._store.get_active_windows(day_of_week(day))
            if windows:
                # Meals that start late may spill past midnight.
                day_start, day_end = local_day_bounds(day, self._tz)
                bookings = await self._store.list_confirmed_bookings(
                    day_start, day_end + timedelta(days=1)
                )

        result = compute_availability(
            day,
            party_size,
            windows=windows,
            closure=closure,
            bookings=bookings,
            now=self._clock(),
            tz=self._tz,
            booking_window=self._booking_window,
        )
        logger.debug(
            "Availability for %s (party of %d): %d services, closed=%s",
            day, party_size, len(result.services), result.closed,
        )
        return result
