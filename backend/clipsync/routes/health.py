"""
ClipSync Backend — System Routes
=================================

What:  Health check, service info, and root descriptor.
Why:   Load balancers and Docker health checks route away from an instance
       that cannot reach its database; clients read limits from /system/info.
Who:   Monitoring, container orchestration, sync clients at startup.

Status levels:
    - healthy:   database reachable (HTTP 200)
    - unhealthy: database unreachable (HTTP 503)
"""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request, Response
from sqlalchemy.exc import SQLAlchemyError

from clipsync import __version__
from clipsync.config import settings
from clipsync.schemas.common import HealthResponse, SystemInfoResponse
from clipsync.services.content_service import content_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["System"])

SERVICE_NAME = "clipboard-sync-server"

# Initialized once when the module loads
_start_time = time.time()


def _uptime() -> float:
    return round(time.time() - _start_time, 2)


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
    summary="Service health check",
)
@router.get("/api/v1/system/health", response_model=HealthResponse, include_in_schema=False)
async def health_check(request: Request, response: Response) -> HealthResponse:
    """
    Runs SELECT 1 against the database; 503 when it fails.
    """
    db_status = "connected"
    overall = "healthy"

    try:
        await request.app.state.database.ping()
    except (SQLAlchemyError, OSError) as e:
        db_status = "disconnected"
        overall = "unhealthy"
        response.status_code = 503
        logger.warning("Health check: database unreachable: %s", str(e))

    return HealthResponse(
        status=overall,
        service=SERVICE_NAME,
        version=__version__,
        database=db_status,
        timestamp=datetime.now(timezone.utc),
        uptime_seconds=_uptime(),
    )


@router.get("/api/v1/system/info", response_model=SystemInfoResponse, summary="Service limits")
async def system_info() -> SystemInfoResponse:
    return SystemInfoResponse(
        service=SERVICE_NAME,
        version=__version__,
        environment=settings.environment,
        max_content_size=settings.max_content_size,
        max_content_size_human=content_service.format_size(settings.max_content_size),
        token_lifetime_hours=settings.jwt_expire_hours,
        cleanup_days=settings.cleanup_days,
        timestamp=datetime.now(timezone.utc),
        uptime_seconds=_uptime(),
    )


@router.get("/", include_in_schema=False)
async def root() -> dict:
    return {
        "service": SERVICE_NAME,
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "api": "/api/v1",
    }
