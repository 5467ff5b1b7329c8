"""
ClipSync Backend — Clipboard Request/Response Schemas
======================================================

What:  Pydantic models for item CRUD, single and batch sync, listing,
       recent/latest, and statistics.
Why:   One explicit record type per operation instead of free-form maps.

Field conventions:
    - `type` is accepted as a raw string; SyncService coerces empty to "text"
      and rejects unknown values itself, so batch sync can report an invalid
      type per item instead of failing the whole request with a 422.
    - `timestamp` is accepted as a string or a number (Unix epoch); the
      Timestamp Normalizer decides whether it is parseable.
"""

from datetime import datetime
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from clipsync.schemas.common import ensure_utc

RawTimestamp = Optional[Union[str, int, float]]


def _timestamp_to_str(v: RawTimestamp) -> Optional[str]:
    if v is None:
        return None
    if isinstance(v, bool):
        raise ValueError("timestamp must be a string or a number")
    return str(v)


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class ClipboardItemRequest(BaseModel):
    """Body for POST/PUT /clipboard/items and each entry of a batch sync."""
    content: str = Field(description="Clipboard content (text, or encoded image/file payload)")
    type: Optional[str] = Field(default=None, description="text, image or file (default text)")
    timestamp: Optional[str] = Field(default=None, description="Client event time, many formats accepted")

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, v: RawTimestamp) -> Optional[str]:
        return _timestamp_to_str(v)


class SyncSingleItemRequest(ClipboardItemRequest):
    """Body for POST /clipboard/sync-single: upsert keyed on (user, client_id)."""
    client_id: str = Field(min_length=1, max_length=255, description="Originating device id")

    @field_validator("client_id")
    @classmethod
    def _client_id_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("client_id must not be blank")
        return v


class BatchSyncRequest(BaseModel):
    device_id: Optional[str] = Field(default=None, description="Sending device, recorded in logs only")
    items: List[ClipboardItemRequest]


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class ClipboardItemResponse(BaseModel):
    id: str
    client_id: Optional[str] = None
    content: str
    type: str
    timestamp: datetime
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("timestamp", "created_at", "updated_at")
    @classmethod
    def _as_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class SyncResult(BaseModel):
    """Outcome of a single-item sync: the stored row and whether it was inserted."""
    item: ClipboardItemResponse
    created: bool


class FailedItem(BaseModel):
    content: str = Field(description="Original content truncated to 50 characters")
    error: str = Field(description="content too large | invalid content type | invalid timestamp | database error")


class BatchSyncResponse(BaseModel):
    synced: List[ClipboardItemResponse]
    failed: List[FailedItem]
    synced_count: int
    failed_count: int
    total: int


class PaginatedItemsResponse(BaseModel):
    items: List[ClipboardItemResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_prev: bool


class RecentItemsResponse(BaseModel):
    items: List[ClipboardItemResponse]
    total: int


class DailyActivity(BaseModel):
    date: str = Field(description="Calendar date (YYYY-MM-DD) of the logical timestamp")
    count: int


class StatisticsResponse(BaseModel):
    total_items: int
    synced_items: int
    unsynced_items: int
    total_content_size: int
    type_distribution: Dict[str, int]
    recent_activity: List[DailyActivity]
