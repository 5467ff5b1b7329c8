"""
ClipSync Backend — Shared Response Schemas
===========================================

What:  Error, message, health and system-info response models used by every router.
Why:   Clients parse one error shape across all endpoints; not-found and
       forbidden-by-ownership share it exactly.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes read back from the store.

    SQLite returns naive values for DateTime(timezone=True) columns; everything
    is written in UTC, so tagging it on the way out is lossless.
    """
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "not_found",
            "message": "clipboard item not found",
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class MessageResponse(BaseModel):
    message: str
    data: Optional[Dict[str, Any]] = None


class HealthResponse(BaseModel):
    """Returned by GET /health and GET /api/v1/system/health."""
    status: str = Field(description="Overall service status: healthy, unhealthy")
    service: str = Field(default="clipboard-sync-server")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    timestamp: datetime = Field(description="Server time (UTC)")
    uptime_seconds: float = Field(description="Seconds since service started")


class SystemInfoResponse(BaseModel):
    """Returned by GET /api/v1/system/info: non-secret limits clients can adapt to."""
    service: str = "clipboard-sync-server"
    version: str
    environment: str
    max_content_size: int
    max_content_size_human: str
    token_lifetime_hours: int
    cleanup_days: int
    timestamp: datetime
    uptime_seconds: float
