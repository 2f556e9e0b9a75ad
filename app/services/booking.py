"""
Booking committer.

Turns a raw ``BookingRequest`` into either a committed booking or a
rejection. Checks run in a fixed order and stop at the first failure:

1.  ``start_at``: parses, not in the past, enough notice, within horizon.
2.  Party size, name, phone (normalised) and optional email.
3.  No closure on the local date of ``start_at``.
4.  An active window for the service on that weekday contains the start
    time (``start_time`` .. ``last_booking_time``, both inclusive).
5.  Under the (local date, service) lock: confirmed covers overlapping
    ``[start_at, start_at + meal_duration)`` plus the party fit the window
    capacity.
6.  Still under the lock: pick an unused confirmation code and insert.
7.  Hand the booking to the notifier without waiting on it.

Expected failures come back as ``BookingResult(ok=False, ...)``. Storage
and lock faults are logged and reported as ``internal_error``.
"""

from __future__ import annotations

import logging
import re
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo

from pydantic import EmailStr, TypeAdapter, ValidationError

from app import errors
from app.db import ReservationStore
from app.errors import CodeGenerationError, LockTimeoutError, Rejection
from app.models import Booking, BookingRequest, BookingResult, ServiceWindow
from app.services.booking_rules import BookingWindow, day_of_week, local_date, utcnow
from app.services.codes import generate_confirmation_code
from app.services.locks import KeyedLock
from app.services.notifier import BookingNotifier

logger = logging.getLogger(__name__)

_PHONE_SEPARATORS = re.compile(r"[\s\-.()]")
# After normalisation: optional leading "+", then digits only, at least 10.
_PHONE_PATTERN = re.compile(r"^\+?\d{10,}$")
_email_adapter = TypeAdapter(EmailStr)

# Attempts at drawing an unused confirmation code before giving up.
_CODE_ATTEMPTS = 20


def normalize_phone(phone: str) -> str:
    """Strip whitespace, dashes, dots and parentheses."""
    return _PHONE_SEPARATORS.sub("", phone)


def _text(value: object) -> str:
    return value.strip() if isinstance(value, str) else ""


def _blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_start_at(raw: str, tz: tzinfo) -> datetime | None:
    """Parse an ISO-8601 instant; naive values are read in the restaurant timezone."""
    try:
        parsed = datetime.fromisoformat(raw.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed.astimezone(timezone.utc)


@dataclass(frozen=True)
class _ValidRequest:
    start_at: datetime
    service_name: str
    party_size: int
    name: str
    phone: str
    email: str | None
    notes: str | None


def _reject(rejection: Rejection, **fmt: object) -> BookingResult:
    message = rejection.message.format(**fmt) if fmt else rejection.message
    return BookingResult(ok=False, reason=rejection.code, message=message)


class BookingCommitter:
    """Validates and commits bookings, one at a time per (date, service)."""

    def __init__(
        self,
        store: ReservationStore,
        notifier: BookingNotifier,
        *,
        tz: tzinfo,
        booking_window: BookingWindow,
        locks: KeyedLock,
        min_party_size: int = 1,
        max_party_size: int = 20,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._tz = tz
        self._booking_window = booking_window
        self._locks = locks
        self._min_party = min_party_size
        self._max_party = max_party_size
        self._clock = clock

    # ── Public API ─────────────────────────────────────────────────────

    async def commit(self, request: BookingRequest) -> BookingResult:
        validated = self._validate(request)
        if isinstance(validated, BookingResult):
            return validated

        try:
            result, booking = await self._commit(validated)
        except (sqlite3.Error, LockTimeoutError, CodeGenerationError):
            logger.exception(
                "Booking failed for %s at %s", validated.service_name, validated.start_at
            )
            return _reject(errors.INTERNAL_ERROR)

        if booking is None:
            logger.info(
                "Booking rejected (%s): %s at %s for %d",
                result.reason, validated.service_name,
                validated.start_at.isoformat(), validated.party_size,
            )
            return result

        logger.info(
            "Booking %s confirmed: %s at %s for %d",
            booking.confirmation_code, booking.service_name,
            booking.start_at.isoformat(), booking.party_size,
        )
        self._notifier.dispatch(booking)
        return result

    # ── Validation (steps 1-2) ─────────────────────────────────────────

    def _validate(self, request: BookingRequest) -> _ValidRequest | BookingResult:
        now = self._clock()

        if not isinstance(request.start_at, str):
            return _reject(errors.INVALID_START_AT)
        start_at = parse_start_at(request.start_at, self._tz)
        if start_at is None:
            return _reject(errors.INVALID_START_AT)
        if start_at < now:
            return _reject(errors.START_IN_PAST)
        if start_at < self._booking_window.earliest(now):
            minutes = int(self._booking_window.min_notice.total_seconds() // 60)
            return _reject(errors.INSUFFICIENT_NOTICE, minutes=minutes)
        if start_at > self._booking_window.latest(now):
            return _reject(errors.BEYOND_BOOKING_HORIZON, days=self._booking_window.horizon.days)

        party_size = request.party_size
        if (
            isinstance(party_size, bool)
            or not isinstance(party_size, int)
            or not self._min_party <= party_size <= self._max_party
        ):
            return _reject(errors.INVALID_PARTY_SIZE, low=self._min_party, high=self._max_party)

        service_name = _text(request.service_name)
        if not service_name:
            return _reject(errors.MISSING_SERVICE)

        name = _text(request.name)
        if not name:
            return _reject(errors.MISSING_NAME)

        if _blank(request.phone):
            return _reject(errors.MISSING_PHONE)
        if not isinstance(request.phone, str):
            return _reject(errors.INVALID_PHONE)
        phone = normalize_phone(request.phone)
        if not _PHONE_PATTERN.match(phone):
            return _reject(errors.INVALID_PHONE)

        email = None
        if not _blank(request.email):
            if not isinstance(request.email, str):
                return _reject(errors.INVALID_EMAIL)
            try:
                email = str(_email_adapter.validate_python(request.email.strip()))
            except ValidationError:
                return _reject(errors.INVALID_EMAIL)

        notes = (request.notes or "").strip() or None

        return _ValidRequest(
            start_at=start_at,
            service_name=service_name,
            party_size=party_size,
            name=name,
            phone=phone,
            email=email,
            notes=notes,
        )

    # ── Schedule + capacity (steps 3-6) ────────────────────────────────

    async def _commit(self, req: _ValidRequest) -> tuple[BookingResult, Booking | None]:
        day = local_date(req.start_at, self._tz)

        if await self._store.is_closed(day):
            return _reject(errors.DATE_CLOSED), None

        window = await self._store.get_active_window(req.service_name, day_of_week(day))
        if window is None:
            return _reject(errors.SERVICE_UNAVAILABLE), None

        local_time = req.start_at.astimezone(self._tz).time()
        if not window.start_time <= local_time <= window.last_booking_time:
            return _reject(errors.SLOT_OUTSIDE_WINDOW), None

        end_at = req.start_at + timedelta(minutes=window.meal_duration)

        async with self._locks.hold((day.isoformat(), req.service_name)):
            taken = await self._store.sum_overlapping_party_size(
                req.service_name, req.start_at, end_at
            )
            if taken + req.party_size > window.capacity:
                return _reject(errors.INSUFFICIENT_CAPACITY), None

            booking = await self._insert(req, window, end_at)

        result = BookingResult(
            ok=True,
            confirmation_code=booking.confirmation_code,
            booking_id=booking.id,
        )
        return result, booking

    async def _insert(self, req: _ValidRequest, window: ServiceWindow, end_at: datetime) -> Booking:
        for _ in range(_CODE_ATTEMPTS):
            code = generate_confirmation_code()
            if await self._store.confirmation_code_exists(code):
                continue
            try:
                return await self._store.insert_booking(
                    confirmation_code=code,
                    service_name=window.name,
                    start_at=req.start_at,
                    end_at=end_at,
                    party_size=req.party_size,
                    name=req.name,
                    phone=req.phone,
                    email=req.email,
                    notes=req.notes,
                )
            except sqlite3.IntegrityError:
                # Another writer took the code between the check and the insert.
                logger.warning("Confirmation code collision on %s, retrying", code)
        raise CodeGenerationError(f"no unused confirmation code after {_CODE_ATTEMPTS} attempts")
