"""
Booking endpoints – commit a reservation and look it up by confirmation code.

Rejections are part of the normal response contract: the body is always a
``BookingResult`` and the status code tells validation (400), business
(409) and infrastructure (500) failures apart.
"""

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse

from app.dependencies import Committer, Store
from app.errors import status_for
from app.models import BookingRequest, BookingResult, BookingSummary, Error
from app.rate_limit import BOOKING, DEFAULT, limiter
from app.services.codes import is_valid_code

router = APIRouter(prefix="/api/bookings", tags=["bookings"])


@router.post(
    "",
    response_model=BookingResult,
    status_code=status.HTTP_201_CREATED,
    operation_id="createBooking",
    summary="Book a table",
    responses={
        400: {"model": BookingResult, "description": "Invalid booking request"},
        409: {"model": BookingResult, "description": "Slot cannot be booked"},
        500: {"model": BookingResult, "description": "Booking could not be stored"},
    },
)
@limiter.limit(BOOKING)
async def create_booking(
    request: Request,
    body: BookingRequest,
    committer: Committer,
) -> JSONResponse:
    result = await committer.commit(body)
    code = status.HTTP_201_CREATED if result.ok else status_for(result.reason)
    return JSONResponse(
        status_code=code,
        content=result.model_dump(mode="json", exclude_none=True),
    )


@router.get(
    "/{confirmation_code}",
    response_model=BookingSummary,
    operation_id="getBooking",
    summary="Look up a booking by confirmation code",
)
@limiter.limit(DEFAULT)
async def get_booking(request: Request, confirmation_code: str, store: Store) -> BookingSummary:
    code = confirmation_code.strip().upper()
    booking = await store.get_booking_by_code(code) if is_valid_code(code) else None
    if booking is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=Error(
                error="not_found",
                message="Booking not found",
                details={"confirmation_code": confirmation_code},
            ).model_dump(),
        )
    return BookingSummary.model_validate(booking, from_attributes=True)
