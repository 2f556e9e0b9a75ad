"""
FastAPI dependencies.

The store and the services built on it live on ``app.state`` (created by
the lifespan in ``app.main``); routers reach them only through these
functions, so tests can swap any of them with ``dependency_overrides``.
"""

from typing import Annotated

from fastapi import Depends, Request

from app.db import ReservationStore
from app.services.availability import AvailabilityService
from app.services.booking import BookingCommitter


def get_store(request: Request) -> ReservationStore:
    return request.app.state.store


def get_availability_service(request: Request) -> AvailabilityService:
    return request.app.state.availability


def get_committer(request: Request) -> BookingCommitter:
    return request.app.state.committer


Store = Annotated[ReservationStore, Depends(get_store)]
Availability = Annotated[AvailabilityService, Depends(get_availability_service)]
Committer = Annotated[BookingCommitter, Depends(get_committer)]
