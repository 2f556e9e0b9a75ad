"""
Availability endpoint – bookable slots per service for a date and party size.
"""

from datetime import date, datetime

from fastapi import APIRouter, HTTPException, Query, Request, status

from app.config import MAX_PARTY_SIZE, MIN_PARTY_SIZE
from app.dependencies import Availability
from app.models import AvailabilityResponse, Error
from app.rate_limit import DEFAULT, limiter

router = APIRouter(prefix="/api", tags=["availability"])


def _bad_request(error: str, message: str, **details: object) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=Error(error=error, message=message, details=details or None).model_dump(),
    )


def _parse_date(raw: str) -> date:
    try:
        return datetime.strptime(raw, "%Y-%m-%d").date()
    except ValueError:
        raise _bad_request(
            "invalid_date", "Invalid date format. Use YYYY-MM-DD", provided_date=raw
        ) from None


def _parse_party_size(raw: str) -> int:
    try:
        party_size = int(raw)
    except ValueError:
        party_size = 0
    if not MIN_PARTY_SIZE <= party_size <= MAX_PARTY_SIZE:
        raise _bad_request(
            "invalid_party_size",
            f"Invalid number of guests ({MIN_PARTY_SIZE}-{MAX_PARTY_SIZE})",
            party_size=raw,
        )
    return party_size


@router.get(
    "/availability",
    response_model=AvailabilityResponse,
    operation_id="getAvailability",
    summary="List bookable slots for a date and party size",
)
@limiter.limit(DEFAULT)
async def get_availability(
    request: Request,
    availability: Availability,
    day: str | None = Query(None, alias="date", description="Date (YYYY-MM-DD)"),
    party_size: str | None = Query(None, description="Number of guests"),
) -> AvailabilityResponse:
    if not day or not party_size:
        missing = [name for name, value in (("date", day), ("party_size", party_size)) if not value]
        raise _bad_request(
            "missing_parameter", "Missing date or party_size parameter", missing=missing
        )

    target = _parse_date(day)
    if target < availability.today():
        raise _bad_request("date_in_past", "Date cannot be in the past", provided_date=day)

    return await availability.get(target, _parse_party_size(party_size))
