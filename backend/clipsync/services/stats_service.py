"""
ClipSync Backend — Statistics Aggregator
=========================================

What:  Per-user aggregates over clipboard items.
How:   Four independent queries (count, byte size, type distribution, daily
       activity). They are not read in one snapshot, so a concurrent write
       may show up in some aggregates and not others.

Byte size is computed in SQL so large histories are never loaded:
    PostgreSQL: SUM(octet_length(content))
    SQLite:     SUM(length(CAST(content AS BLOB)))
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import LargeBinary, cast, desc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clipsync.exceptions import AuthError, DatabaseError
from clipsync.models.clipboard_item import ClipboardItem
from clipsync.schemas.clipboard import DailyActivity, StatisticsResponse

logger = logging.getLogger(__name__)

ACTIVITY_WINDOW_DAYS = 7


class StatsService:
    async def get_statistics(
        self,
        db: AsyncSession,
        user_id: Optional[str],
        now: Optional[datetime] = None,
    ) -> StatisticsResponse:
        if not user_id:
            raise AuthError()
        now = now or datetime.now(timezone.utc)

        if db.get_bind().dialect.name == "postgresql":
            byte_length = func.octet_length(ClipboardItem.content)
        else:
            byte_length = func.length(cast(ClipboardItem.content, LargeBinary))

        owned = ClipboardItem.user_id == user_id
        day = func.date(ClipboardItem.timestamp)

        try:
            total = (
                await db.execute(select(func.count(ClipboardItem.id)).where(owned))
            ).scalar() or 0

            total_size = (
                await db.execute(select(func.coalesce(func.sum(byte_length), 0)).where(owned))
            ).scalar() or 0

            type_rows = await db.execute(
                select(ClipboardItem.type, func.count(ClipboardItem.id))
                .where(owned)
                .group_by(ClipboardItem.type)
            )

            activity_rows = await db.execute(
                select(day.label("day"), func.count(ClipboardItem.id))
                .where(owned, ClipboardItem.timestamp >= now - timedelta(days=ACTIVITY_WINDOW_DAYS))
                .group_by(day)
                .order_by(desc(day))
            )
        except SQLAlchemyError as e:
            logger.error("Database error computing statistics: %s", e, exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__})

        return StatisticsResponse(
            total_items=total,
            # Everything stored on the server is synced by definition
            synced_items=total,
            unsynced_items=0,
            total_content_size=int(total_size),
            type_distribution={item_type: count for item_type, count in type_rows.all()},
            # PostgreSQL returns date objects, SQLite returns ISO strings
            recent_activity=[
                DailyActivity(date=str(day_value), count=count)
                for day_value, count in activity_rows.all()
            ],
        )


stats_service = StatsService()
