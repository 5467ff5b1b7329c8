"""
ClipSync Backend — Sync Reconciler (Business Logic Orchestrator)
=================================================================

What:  All clipboard item operations: create, single-item sync (upsert),
       batch sync with per-item outcomes, filtered listing, get/update/delete,
       latest and recent.
Why:   Keeps the merge and ownership rules in one place, independent of HTTP.
Who:   Called by the /clipboard route handlers.

Ownership:
    Every query carries `user_id == <authenticated user>`. An item owned by
    someone else is reported exactly like a missing one.

Write pipeline (every write path):
    ┌───────────┐   ┌───────────┐   ┌────────────┐   ┌──────────┐   ┌───────┐
    │ size check│──▶│ type check│──▶│ timestamp  │──▶│ sanitize │──▶│ store │
    └───────────┘   └───────────┘   │ normalize  │   └──────────┘   └───────┘
                                    └────────────┘

Single-item sync:
    INSERT ... ON CONFLICT (user_id, client_id) DO UPDATE ... RETURNING id
    A concurrent pair of syncs for the same device resolves inside the
    store, never as a duplicate row or a lost write. `created` is true when
    the returned id is the one generated for this call.

Batch sync:
    Items are processed in input order, each inside its own SAVEPOINT. A
    failing item rolls back only itself and is reported with a reason; it
    never fails the request. Batch items are always inserted (no dedup by
    client id), unlike single-item sync.
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence, Tuple

from sqlalchemy import delete, desc, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clipsync.exceptions import (
    AuthError,
    ContentTooLargeError,
    DatabaseError,
    InvalidContentTypeError,
    NotFoundError,
    UnparseableTimestampError,
    ValidationError,
)
from clipsync.models.clipboard_item import ClipboardItem, new_item_id
from clipsync.schemas.clipboard import (
    BatchSyncResponse,
    ClipboardItemRequest,
    ClipboardItemResponse,
    FailedItem,
    PaginatedItemsResponse,
    RecentItemsResponse,
    SyncResult,
)
from clipsync.services.content_service import content_service
from clipsync.services.timestamp_parser import normalize_or_now, parse_client_timestamp

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
DEFAULT_RECENT_LIMIT = 10
MAX_RECENT_LIMIT = 50

ITEM_RESOURCE = "clipboard item"

# Per-item failure reasons reported by batch sync
REASON_TOO_LARGE = "content too large"
REASON_INVALID_TYPE = "invalid content type"
REASON_INVALID_TIMESTAMP = "invalid timestamp"
REASON_DATABASE = "database error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise AuthError()
    return user_id


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SyncService:
    """
    Stateless: receives the session and the authenticated user id per call.

    Store failures are wrapped in DatabaseError (generic message, detail
    logged). Application errors propagate unchanged.
    """

    # ── Shared write pipeline ─────────────────────────────────────────────

    def _prepare(
        self,
        content: str,
        content_type: Optional[str],
        timestamp: Optional[str],
    ) -> Tuple[str, str, datetime]:
        content_service.validate_size(content)
        item_type = content_service.validate_type(content_service.coerce_type(content_type))
        logical_time = normalize_or_now(timestamp)
        return content_service.sanitize(content), item_type, logical_time

    async def _owned_item(self, db: AsyncSession, user_id: str, item_id: str) -> ClipboardItem:
        result = await db.execute(
            select(ClipboardItem).where(
                ClipboardItem.id == item_id,
                ClipboardItem.user_id == user_id,
            )
        )
        item = result.scalar_one_or_none()
        if item is None:
            raise NotFoundError(resource=ITEM_RESOURCE)
        return item

    # ── Create ────────────────────────────────────────────────────────────

    async def create_item(
        self,
        db: AsyncSession,
        user_id: Optional[str],
        content: str,
        content_type: Optional[str] = None,
        timestamp: Optional[str] = None,
    ) -> ClipboardItemResponse:
        """Insert a new item with a fresh id and no client id. No dedup."""
        user_id = _require_user(user_id)
        clean_content, item_type, logical_time = self._prepare(content, content_type, timestamp)

        try:
            item = ClipboardItem(
                id=new_item_id(),
                user_id=user_id,
                content=clean_content,
                type=item_type,
                timestamp=logical_time,
            )
            db.add(item)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error creating clipboard item: %s", e, exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__})

        logger.info("Clipboard item %s created (type=%s)", item.id, item_type)
        return ClipboardItemResponse.model_validate(item)

    # ── Single-item sync ──────────────────────────────────────────────────

    async def sync_single_item(
        self,
        db: AsyncSession,
        user_id: Optional[str],
        client_id: str,
        content: str,
        content_type: Optional[str] = None,
        timestamp: Optional[str] = None,
    ) -> SyncResult:
        """
        Upsert keyed on (user_id, client_id).

        Raises:
            AuthError:       no authenticated user
            ValidationError: empty client id, bad size/type/timestamp
            DatabaseError:   store failure
        """
        user_id = _require_user(user_id)
        if not client_id or not client_id.strip():
            raise ValidationError("client_id is required for single-item sync", field="client_id")
        clean_content, item_type, logical_time = self._prepare(content, content_type, timestamp)

        candidate_id = new_item_id()
        now = _utcnow()
        insert = pg_insert if db.get_bind().dialect.name == "postgresql" else sqlite_insert

        stmt = insert(ClipboardItem).values(
            id=candidate_id,
            user_id=user_id,
            client_id=client_id,
            content=clean_content,
            type=item_type,
            timestamp=logical_time,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[ClipboardItem.user_id, ClipboardItem.client_id],
            set_={
                "content": stmt.excluded.content,
                "type": stmt.excluded.type,
                "timestamp": stmt.excluded.timestamp,
                "updated_at": now,
            },
        ).returning(ClipboardItem.id)

        try:
            stored_id = (await db.execute(stmt)).scalar_one()
            result = await db.execute(
                select(ClipboardItem)
                .where(ClipboardItem.id == stored_id)
                .execution_options(populate_existing=True)
            )
            item = result.scalar_one()
        except SQLAlchemyError as e:
            logger.error("Database error during single-item sync: %s", e, exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__})

        created = stored_id == candidate_id
        logger.info(
            "Single-item sync %s item %s for client %s",
            "created" if created else "updated",
            stored_id,
            client_id,
        )
        return SyncResult(item=ClipboardItemResponse.model_validate(item), created=created)

    # ── Batch sync ────────────────────────────────────────────────────────

    async def batch_sync(
        self,
        db: AsyncSession,
        user_id: Optional[str],
        items: Sequence[ClipboardItemRequest],
        device_id: Optional[str] = None,
    ) -> BatchSyncResponse:
        """
        Insert each item independently; report per-item failures.

        Raises:
            AuthError:       no authenticated user
            ValidationError: empty item list
        """
        user_id = _require_user(user_id)
        if not items:
            raise ValidationError("no items to sync", field="items")

        synced = []
        failed = []

        for index, entry in enumerate(items):
            reason = None
            try:
                clean_content, item_type, logical_time = self._prepare(
                    entry.content, entry.type, entry.timestamp
                )
            except ContentTooLargeError:
                reason = REASON_TOO_LARGE
            except InvalidContentTypeError:
                reason = REASON_INVALID_TYPE
            except UnparseableTimestampError:
                reason = REASON_INVALID_TIMESTAMP

            if reason is None:
                item = ClipboardItem(
                    id=new_item_id(),
                    user_id=user_id,
                    content=clean_content,
                    type=item_type,
                    timestamp=logical_time,
                )
                try:
                    async with db.begin_nested():
                        db.add(item)
                    synced.append(ClipboardItemResponse.model_validate(item))
                    continue
                except SQLAlchemyError as e:
                    logger.warning("Batch item %d failed to store: %s", index, type(e).__name__)
                    reason = REASON_DATABASE

            failed.append(FailedItem(content=content_service.truncate(entry.content), error=reason))

        logger.info(
            "Batch sync from device %s: %d synced, %d failed",
            device_id or "unknown",
            len(synced),
            len(failed),
        )
        if failed:
            logger.debug(
                "Batch sync failure reasons: %s",
                ", ".join(f.error for f in failed),
            )

        return BatchSyncResponse(
            synced=synced,
            failed=failed,
            synced_count=len(synced),
            failed_count=len(failed),
            total=len(items),
        )

    # ── Listing ───────────────────────────────────────────────────────────

    async def list_items(
        self,
        db: AsyncSession,
        user_id: Optional[str],
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        since: Optional[str] = None,
        content_type: Optional[str] = None,
        search: Optional[str] = None,
    ) -> PaginatedItemsResponse:
        """
        Offset-paginated listing, newest logical timestamp first.

        Filters (ANDed): `since` lower bound on the logical timestamp, exact
        type, substring search on content.

        Raises:
            ValidationError: unparseable `since` or unknown type
        """
        user_id = _require_user(user_id)
        page = max(page, 1)
        if page_size < 1 or page_size > MAX_PAGE_SIZE:
            page_size = DEFAULT_PAGE_SIZE

        conditions = [ClipboardItem.user_id == user_id]
        since_time = parse_client_timestamp(since)
        if since_time is not None:
            conditions.append(ClipboardItem.timestamp >= since_time)
        if content_type is not None and content_type.strip():
            conditions.append(ClipboardItem.type == content_service.validate_type(content_type.strip()))
        if search:
            conditions.append(ClipboardItem.content.like(f"%{_escape_like(search)}%", escape="\\"))

        try:
            total = (
                await db.execute(select(func.count(ClipboardItem.id)).where(*conditions))
            ).scalar() or 0

            result = await db.execute(
                select(ClipboardItem)
                .where(*conditions)
                .order_by(desc(ClipboardItem.timestamp), ClipboardItem.id)
                .offset((page - 1) * page_size)
                .limit(page_size)
            )
            items = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing clipboard items: %s", e, exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__})

        total_pages = math.ceil(total / page_size) if total else 0
        return PaginatedItemsResponse(
            items=[ClipboardItemResponse.model_validate(item) for item in items],
            total=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )

    # ── Single item ───────────────────────────────────────────────────────

    async def get_item(self, db: AsyncSession, user_id: Optional[str], item_id: str) -> ClipboardItemResponse:
        user_id = _require_user(user_id)
        try:
            item = await self._owned_item(db, user_id, item_id)
        except SQLAlchemyError as e:
            logger.error("Database error fetching clipboard item: %s", e)
            raise DatabaseError(context={"error_type": type(e).__name__})
        return ClipboardItemResponse.model_validate(item)

    async def update_item(
        self,
        db: AsyncSession,
        user_id: Optional[str],
        item_id: str,
        content: str,
        content_type: Optional[str] = None,
        timestamp: Optional[str] = None,
    ) -> ClipboardItemResponse:
        """
        Overwrite content; type and timestamp only when supplied.

        Raises:
            NotFoundError:   missing or foreign item
            ValidationError: bad size/type/timestamp
        """
        user_id = _require_user(user_id)
        content_service.validate_size(content)
        new_type = None
        if content_type is not None and content_type.strip():
            new_type = content_service.validate_type(content_type.strip())
        new_time = parse_client_timestamp(timestamp)

        try:
            item = await self._owned_item(db, user_id, item_id)
            item.content = content_service.sanitize(content)
            if new_type is not None:
                item.type = new_type
            if new_time is not None:
                item.timestamp = new_time
            item.updated_at = _utcnow()
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error updating clipboard item: %s", e, exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__})

        logger.info("Clipboard item %s updated", item.id)
        return ClipboardItemResponse.model_validate(item)

    async def delete_item(self, db: AsyncSession, user_id: Optional[str], item_id: str) -> None:
        """Physical delete scoped to the owner. Raises NotFoundError otherwise."""
        user_id = _require_user(user_id)
        try:
            item = await self._owned_item(db, user_id, item_id)
            await db.delete(item)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error deleting clipboard item: %s", e, exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__})
        logger.info("Clipboard item %s deleted", item_id)

    # ── Latest / recent ───────────────────────────────────────────────────

    async def get_latest_item(self, db: AsyncSession, user_id: Optional[str]) -> ClipboardItemResponse:
        """Most recently written item (server `updated_at`)."""
        user_id = _require_user(user_id)
        try:
            result = await db.execute(
                select(ClipboardItem)
                .where(ClipboardItem.user_id == user_id)
                .order_by(desc(ClipboardItem.updated_at), desc(ClipboardItem.created_at))
                .limit(1)
            )
            item = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error fetching latest item: %s", e)
            raise DatabaseError(context={"error_type": type(e).__name__})

        if item is None:
            raise NotFoundError(resource=ITEM_RESOURCE)
        return ClipboardItemResponse.model_validate(item)

    async def get_recent_items(
        self,
        db: AsyncSession,
        user_id: Optional[str],
        limit: int = DEFAULT_RECENT_LIMIT,
    ) -> RecentItemsResponse:
        """Newest items by server `created_at`, plus the user's total count."""
        user_id = _require_user(user_id)
        if limit < 1:
            limit = DEFAULT_RECENT_LIMIT
        limit = min(limit, MAX_RECENT_LIMIT)

        try:
            result = await db.execute(
                select(ClipboardItem)
                .where(ClipboardItem.user_id == user_id)
                .order_by(desc(ClipboardItem.created_at), ClipboardItem.id)
                .limit(limit)
            )
            items = list(result.scalars().all())
            total = (
                await db.execute(
                    select(func.count(ClipboardItem.id)).where(ClipboardItem.user_id == user_id)
                )
            ).scalar() or 0
        except SQLAlchemyError as e:
            logger.error("Database error fetching recent items: %s", e)
            raise DatabaseError(context={"error_type": type(e).__name__})

        return RecentItemsResponse(
            items=[ClipboardItemResponse.model_validate(item) for item in items],
            total=total,
        )

    # ── Maintenance ───────────────────────────────────────────────────────

    async def purge_older_than(
        self,
        db: AsyncSession,
        days: int,
        now: Optional[datetime] = None,
    ) -> int:
        """
        Physically delete every user's items created more than `days` ago.

        Admin-only (clipsync-admin cleanup); not exposed over HTTP.
        Returns the number of rows removed.
        """
        if days < 1:
            raise ValidationError("days must be at least 1", field="days")
        cutoff = (now or _utcnow()) - timedelta(days=days)
        try:
            result = await db.execute(
                delete(ClipboardItem)
                .where(ClipboardItem.created_at < cutoff)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            logger.error("Database error purging old items: %s", e, exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__})
        logger.info("Purged %d clipboard items created before %s", result.rowcount, cutoff.isoformat())
        return result.rowcount


# ── Singleton Instance ────────────────────────────────────────────────────
sync_service = SyncService()
