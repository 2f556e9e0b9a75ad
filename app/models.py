"""Pydantic models for the table reservation API."""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

BookingStatus = Literal["confirmed", "cancelled", "completed", "no_show"]
BOOKING_STATUSES: tuple[str, ...] = ("confirmed", "cancelled", "completed", "no_show")

NotificationStatus = Literal["sent", "failed", "skipped"]


# ── Schedule ──────────────────────────────────────────────────────────────


class ServiceWindow(BaseModel):
    """A recurring service period (e.g. lunch) on one weekday."""
    name: str = Field(..., min_length=1, description="Short service identifier, e.g. 'midi'")
    display_name: str = Field(..., description="Human readable service name")
    day_of_week: int = Field(..., ge=0, le=6, description="Day of week (0=Sunday, 6=Saturday)")
    start_time: time = Field(..., description="First bookable slot")
    end_time: time = Field(..., description="Service closing time")
    last_booking_time: time = Field(..., description="Latest slot a booking may start at")
    capacity: int = Field(..., gt=0, description="Maximum simultaneous covers")
    slot_interval: int = Field(30, gt=0, description="Minutes between offered slot starts")
    meal_duration: int = Field(60, gt=0, description="Minutes a booking holds its seats")
    is_active: bool = Field(True, description="Inactive windows are ignored")

    @model_validator(mode="after")
    def _check_times(self) -> ServiceWindow:
        if not self.start_time <= self.last_booking_time <= self.end_time:
            raise ValueError("expected start_time <= last_booking_time <= end_time")
        return self


class Closure(BaseModel):
    """A calendar date on which the restaurant takes no bookings."""
    date: date
    reason: str | None = None


# ── Bookings ──────────────────────────────────────────────────────────────


class Booking(BaseModel):
    """A committed reservation."""
    id: UUID
    confirmation_code: str
    service_name: str
    start_at: datetime
    end_at: datetime
    party_size: int
    name: str
    phone: str
    email: str | None = None
    notes: str | None = None
    status: BookingStatus = "confirmed"
    created_at: datetime
    updated_at: datetime


class BookingRequest(BaseModel):
    """Raw booking request.

    Fields are taken as sent so the committer can reject a wrongly typed
    value with that field's own reason.
    """
    start_at: Any = Field(None, description="ISO-8601 start instant")
    service_name: Any = Field(None, description="Service identifier")
    party_size: Any = Field(None, description="Number of covers")
    name: Any = None
    phone: Any = None
    email: Any = None
    notes: str | None = None


class BookingResult(BaseModel):
    """Outcome of a commit attempt. Rejections are results, not errors."""
    ok: bool
    confirmation_code: str | None = None
    booking_id: UUID | None = None
    reason: str | None = Field(None, description="Machine readable rejection code")
    message: str | None = Field(None, description="User facing rejection message")


class BookingSummary(BaseModel):
    """Public view of a booking, looked up by its confirmation code."""
    confirmation_code: str
    service_name: str
    start_at: datetime
    end_at: datetime
    party_size: int
    name: str
    status: BookingStatus


# ── Availability ──────────────────────────────────────────────────────────


class Slot(BaseModel):
    start_at: datetime = Field(..., description="Slot start (UTC instant)")
    available_capacity: int = Field(..., description="Seats left for this slot")


class ServiceAvailability(BaseModel):
    name: str
    display_name: str
    slots: list[Slot] = Field(default_factory=list)


class AvailabilityResponse(BaseModel):
    date: date
    closed: bool = False
    message: str | None = None
    services: list[ServiceAvailability] = Field(default_factory=list)


# ── Misc ──────────────────────────────────────────────────────────────────


class NotificationLog(BaseModel):
    """One confirmation delivery attempt."""
    id: UUID
    booking_id: UUID
    attempt: int
    sent_at: datetime
    channel: str = "email"
    status: NotificationStatus
    error_message: str | None = None


class Error(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    details: dict[str, Any] | None = Field(None, description="Additional error details")


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Health status")
    version: str = Field(..., description="API version")
    timestamp: datetime = Field(..., description="Current timestamp")
