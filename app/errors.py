"""
Booking rejection reasons.

A commit attempt that fails for an expected reason returns one of these
instead of raising. Each carries a stable machine code, the user facing
message and the category that decides the HTTP status.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RejectionKind(str, Enum):
    VALIDATION = "validation"    # malformed or out-of-range input
    BUSINESS = "business"        # closed, no service, full, ...
    INTERNAL = "internal"        # storage or lock failure


_STATUS_BY_KIND = {
    RejectionKind.VALIDATION: 400,
    RejectionKind.BUSINESS: 409,
    RejectionKind.INTERNAL: 500,
}


@dataclass(frozen=True)
class Rejection:
    code: str
    message: str
    kind: RejectionKind

    @property
    def status_code(self) -> int:
        return _STATUS_BY_KIND[self.kind]


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------

INVALID_REQUEST = Rejection(
    "invalid_request", "The booking request could not be read", RejectionKind.VALIDATION
)
INVALID_START_AT = Rejection(
    "invalid_start_at", "Invalid reservation date or time", RejectionKind.VALIDATION
)
START_IN_PAST = Rejection(
    "start_in_past", "Reservations cannot be made in the past", RejectionKind.VALIDATION
)
INSUFFICIENT_NOTICE = Rejection(
    "insufficient_notice",
    "Reservations must be made at least {minutes} minutes in advance",
    RejectionKind.VALIDATION,
)
BEYOND_BOOKING_HORIZON = Rejection(
    "beyond_booking_horizon",
    "Reservations are limited to {days} days in advance",
    RejectionKind.VALIDATION,
)
INVALID_PARTY_SIZE = Rejection(
    "invalid_party_size", "Invalid number of guests ({low}-{high})", RejectionKind.VALIDATION
)
MISSING_SERVICE = Rejection("missing_service", "Service is required", RejectionKind.VALIDATION)
MISSING_NAME = Rejection("missing_name", "Name is required", RejectionKind.VALIDATION)
MISSING_PHONE = Rejection("missing_phone", "Phone number is required", RejectionKind.VALIDATION)
INVALID_PHONE = Rejection("invalid_phone", "Invalid phone number", RejectionKind.VALIDATION)
INVALID_EMAIL = Rejection("invalid_email", "Invalid email address", RejectionKind.VALIDATION)

# ---------------------------------------------------------------------------
# Business rules
# ---------------------------------------------------------------------------

DATE_CLOSED = Rejection(
    "date_closed", "The restaurant is closed on this date", RejectionKind.BUSINESS
)
SERVICE_UNAVAILABLE = Rejection(
    "service_unavailable", "This service is not available on that day", RejectionKind.BUSINESS
)
SLOT_OUTSIDE_WINDOW = Rejection(
    "slot_outside_window", "This time slot is not available", RejectionKind.BUSINESS
)
INSUFFICIENT_CAPACITY = Rejection(
    "insufficient_capacity",
    "Not enough capacity left for this time slot",
    RejectionKind.BUSINESS,
)

# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------

INTERNAL_ERROR = Rejection(
    "internal_error",
    "The reservation could not be completed, please try again",
    RejectionKind.INTERNAL,
)


class LockTimeoutError(Exception):
    """Raised when a booking lock could not be acquired in time."""

    def __init__(self, key: object, timeout: float) -> None:
        super().__init__(f"timed out after {timeout}s waiting for lock {key!r}")
        self.key = key
        self.timeout = timeout


class CodeGenerationError(Exception):
    """Raised when no unused confirmation code could be found."""


_BY_CODE: dict[str, Rejection] = {
    r.code: r
    for r in (
        INVALID_REQUEST, INVALID_START_AT, START_IN_PAST, INSUFFICIENT_NOTICE,
        BEYOND_BOOKING_HORIZON, INVALID_PARTY_SIZE, MISSING_SERVICE, MISSING_NAME,
        MISSING_PHONE, INVALID_PHONE, INVALID_EMAIL, DATE_CLOSED, SERVICE_UNAVAILABLE,
        SLOT_OUTSIDE_WINDOW, INSUFFICIENT_CAPACITY, INTERNAL_ERROR,
    )
}


def status_for(code: str | None) -> int:
    """HTTP status for a rejection code; unknown codes count as internal."""
    rejection = _BY_CODE.get(code or "")
    return rejection.status_code if rejection else 500
