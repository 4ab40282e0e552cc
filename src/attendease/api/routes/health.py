"""Health and orchestration probes."""

import logging
import time

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from attendease.api.dependencies import DbSession
from attendease.api.schemas import ApiResponse, HealthData

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

_started = time.monotonic()


def _uptime() -> float:
    return round(time.monotonic() - _started, 3)


@router.get("/health", response_model=ApiResponse[HealthData])
async def health_check(db: DbSession) -> ApiResponse[HealthData]:
    """Server status with a database round trip."""
    try:
        await db.execute(text("SELECT 1"))
        database = "healthy"
    except SQLAlchemyError:
        logger.warning("Database health probe failed", exc_info=True)
        database = "unhealthy"

    return ApiResponse(
        message="Server is running",
        data=HealthData(
            status="ok" if database == "healthy" else "degraded",
            database=database,
            uptime=_uptime(),
        ),
    )


@router.get("/ready", response_model=ApiResponse[HealthData])
async def readiness_check() -> ApiResponse[HealthData]:
    return ApiResponse(data=HealthData(status="ready", uptime=_uptime()))


@router.get("/live", response_model=ApiResponse[HealthData])
async def liveness_check() -> ApiResponse[HealthData]:
    return ApiResponse(data=HealthData(status="alive", uptime=_uptime()))
