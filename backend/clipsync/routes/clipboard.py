"""
ClipSync Backend — Clipboard Route Handlers
============================================

What:  Item CRUD, single and batch sync, listing, recent/latest, statistics.
Who:   Mobile and desktop sync clients.

Every handler depends on get_current_user, so an unauthenticated request is
rejected with 401 before any query runs. The user id passed to the services
comes from the verified token, never from the request body.

Status codes:
    POST /items           201
    POST /sync-single     201 when a new row was inserted, 200 when updated
    POST /sync            200 even when some items failed (see `failed`)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from clipsync.database import get_db_session
from clipsync.routes.deps import get_current_user
from clipsync.schemas.auth import AuthenticatedUser
from clipsync.schemas.clipboard import (
    BatchSyncRequest,
    BatchSyncResponse,
    ClipboardItemRequest,
    ClipboardItemResponse,
    PaginatedItemsResponse,
    RecentItemsResponse,
    StatisticsResponse,
    SyncResult,
    SyncSingleItemRequest,
)
from clipsync.schemas.common import ErrorResponse, MessageResponse
from clipsync.services.stats_service import stats_service
from clipsync.services.sync_service import sync_service

logger = logging.getLogger(__name__)

# ── Router Configuration ──────────────────────────────────────────────────
router = APIRouter(
    prefix="/api/v1/clipboard",
    tags=["Clipboard"],
    responses={401: {"description": "Missing or invalid token", "model": ErrorResponse}},
)

_NOT_FOUND = {404: {"description": "Item not found", "model": ErrorResponse}}


@router.get(
    "/items",
    response_model=PaginatedItemsResponse,
    responses={400: {"description": "Invalid filter", "model": ErrorResponse}},
    summary="List clipboard items",
    description=(
        "Newest logical timestamp first. page_size outside 1-100 falls back to 20. "
        "`since` accepts the same timestamp formats as item writes."
    ),
)
async def list_items(
    response: Response,
    page: int = Query(default=1, description="1-based page number"),
    page_size: int = Query(default=20, description="Items per page (1-100)"),
    since: Optional[str] = Query(default=None, description="Only items at or after this time"),
    content_type: Optional[str] = Query(default=None, alias="type", description="text, image or file"),
    search: Optional[str] = Query(default=None, description="Substring match on content"),
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> PaginatedItemsResponse:
    result = await sync_service.list_items(
        db,
        current_user.user_id,
        page=page,
        page_size=page_size,
        since=since,
        content_type=content_type,
        search=search,
    )
    response.headers["X-Total-Count"] = str(result.total)
    return result


@router.post(
    "/items",
    status_code=201,
    response_model=ClipboardItemResponse,
    responses={
        400: {"description": "Invalid type or timestamp", "model": ErrorResponse},
        413: {"description": "Content too large", "model": ErrorResponse},
    },
    summary="Create a clipboard item",
)
async def create_item(
    body: ClipboardItemRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ClipboardItemResponse:
    return await sync_service.create_item(
        db, current_user.user_id, body.content, body.type, body.timestamp
    )


@router.get("/items/{item_id}", response_model=ClipboardItemResponse, responses=_NOT_FOUND)
async def get_item(
    item_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ClipboardItemResponse:
    return await sync_service.get_item(db, current_user.user_id, item_id)


@router.put("/items/{item_id}", response_model=ClipboardItemResponse, responses=_NOT_FOUND)
async def update_item(
    item_id: str,
    body: ClipboardItemRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ClipboardItemResponse:
    return await sync_service.update_item(
        db, current_user.user_id, item_id, body.content, body.type, body.timestamp
    )


@router.delete("/items/{item_id}", response_model=MessageResponse, responses=_NOT_FOUND)
async def delete_item(
    item_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await sync_service.delete_item(db, current_user.user_id, item_id)
    return MessageResponse(message="item deleted successfully", data={"id": item_id})


@router.post(
    "/sync",
    response_model=BatchSyncResponse,
    responses={400: {"description": "Empty item list", "model": ErrorResponse}},
    summary="Batch sync",
    description="Each item succeeds or fails on its own; failures are listed with a reason.",
)
async def batch_sync(
    body: BatchSyncRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> BatchSyncResponse:
    return await sync_service.batch_sync(
        db, current_user.user_id, body.items, device_id=body.device_id
    )


@router.post(
    "/sync-single",
    response_model=SyncResult,
    responses={
        201: {"description": "New item stored", "model": SyncResult},
        400: {"description": "Invalid item", "model": ErrorResponse},
        413: {"description": "Content too large", "model": ErrorResponse},
    },
    summary="Upsert the current item for one device",
)
async def sync_single(
    body: SyncSingleItemRequest,
    response: Response,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SyncResult:
    result = await sync_service.sync_single_item(
        db, current_user.user_id, body.client_id, body.content, body.type, body.timestamp
    )
    response.status_code = 201 if result.created else 200
    return result


@router.get("/statistics", response_model=StatisticsResponse, summary="Per-user statistics")
async def statistics(
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> StatisticsResponse:
    return await stats_service.get_statistics(db, current_user.user_id)


@router.get("/recent", response_model=RecentItemsResponse, summary="Most recently created items")
async def recent(
    limit: int = Query(default=10, description="Max items (capped at 50)"),
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> RecentItemsResponse:
    return await sync_service.get_recent_items(db, current_user.user_id, limit=limit)


@router.get(
    "/latest",
    response_model=ClipboardItemResponse,
    responses={404: {"description": "User has no items", "model": ErrorResponse}},
    summary="Most recently written item",
)
async def latest(
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ClipboardItemResponse:
    return await sync_service.get_latest_item(db, current_user.user_id)
