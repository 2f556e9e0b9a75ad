"""
Health check endpoint.

Reports ``ok`` while the store answers queries and ``degraded`` otherwise;
the endpoint itself always returns 200 so load balancers can read the body.
"""

from datetime import datetime, timezone

from fastapi import APIRouter

from app.dependencies import Store
from app.models import HealthResponse

API_VERSION = "0.1.0"

router = APIRouter(prefix="/api", tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    operation_id="getHealth",
    summary="Health check",
)
async def get_health(store: Store) -> HealthResponse:
    return HealthResponse(
        status="ok" if await store.ping() else "degraded",
        version=API_VERSION,
        timestamp=datetime.now(timezone.utc),
    )
