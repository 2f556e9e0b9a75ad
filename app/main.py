"""Main FastAPI application for the table reservation service."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app import errors
from app.config import (
    BOOKING_LOCK_TIMEOUT,
    CORS_ORIGINS,
    DB_PATH,
    LOG_LEVEL,
    MAX_ADVANCE_DAYS,
    MAX_PARTY_SIZE,
    MIN_ADVANCE_NOTICE_MINUTES,
    MIN_PARTY_SIZE,
    NOTIFY_MAX_ATTEMPTS,
    NOTIFY_RETRY_INTERVAL,
    NOTIFY_TIMEOUT,
    RESTAURANT_TIMEZONE,
    SEED_DEFAULT_SCHEDULE,
)
from app.db import ReservationStore
from app.models import Error
from app.rate_limit import limiter
from app.routers import availability, bookings, health
from app.services.availability import AvailabilityService
from app.services.booking import BookingCommitter
from app.services.booking_rules import BookingWindow
from app.services.locks import KeyedLock
from app.services.notifier import BookingNotifier, NotificationRetryWorker

logging.basicConfig(
    level=LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    store = await ReservationStore.open(DB_PATH)
    if SEED_DEFAULT_SCHEDULE:
        await store.seed_default_schedule()

    booking_window = BookingWindow(
        min_notice=timedelta(minutes=MIN_ADVANCE_NOTICE_MINUTES),
        horizon=timedelta(days=MAX_ADVANCE_DAYS),
    )
    notifier = BookingNotifier(store, tz=RESTAURANT_TIMEZONE, timeout=NOTIFY_TIMEOUT)
    retry_worker = NotificationRetryWorker(
        notifier,
        store,
        interval=NOTIFY_RETRY_INTERVAL,
        max_attempts=NOTIFY_MAX_ATTEMPTS,
    )

    app.state.store = store
    app.state.notifier = notifier
    app.state.availability = AvailabilityService(
        store, tz=RESTAURANT_TIMEZONE, booking_window=booking_window
    )
    app.state.committer = BookingCommitter(
        store,
        notifier,
        tz=RESTAURANT_TIMEZONE,
        booking_window=booking_window,
        locks=KeyedLock(timeout=BOOKING_LOCK_TIMEOUT),
        min_party_size=MIN_PARTY_SIZE,
        max_party_size=MAX_PARTY_SIZE,
    )

    await retry_worker.start()
    logger.info("Booking engine ready (db=%s, tz=%s)", store.path, RESTAURANT_TIMEZONE)
    try:
        yield
    finally:
        await retry_worker.stop()
        await notifier.stop()
        await store.close()


app = FastAPI(
    title="Table Reservations API",
    description="Availability and booking engine for restaurant table reservations",
    version=health.API_VERSION,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173", *CORS_ORIGINS],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed bodies and parameters are plain 400s, not FastAPI's 422."""
    if request.url.path.startswith("/api/bookings"):
        rejection = errors.INVALID_REQUEST
        return JSONResponse(
            status_code=rejection.status_code,
            content={"ok": False, "reason": rejection.code, "message": rejection.message},
        )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": Error(
                error="validation_error",
                message="Invalid request parameters",
                details={"errors": [e.get("msg") for e in exc.errors()]},
            ).model_dump()
        },
    )


app.include_router(health.router)
app.include_router(availability.router)
app.include_router(bookings.router)
