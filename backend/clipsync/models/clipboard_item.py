"""
ClipSync Backend — ClipboardItem SQLAlchemy Model
==================================================

What:  ORM model representing the `clipboard_items` table.
Who:   Used by SyncService (writes, listing) and StatsService (aggregates).

Table Design Rationale:
    - client_id: originating device id; NULL for items created through the
      direct item endpoints and batch sync
    - UNIQUE (user_id, client_id): at most one row per device per user. The
      single-item sync upsert targets this constraint. NULLs never collide,
      so NULL-client rows are unrestricted.
    - timestamp: client-asserted logical time, used for listing order and
      the `since` filter
    - created_at / updated_at: server-assigned; "recent" orders by created_at,
      "latest" by updated_at

Indexes:
    (user_id, timestamp DESC)  → paginated listing
    (user_id, updated_at)      → latest item
    (user_id, created_at)      → recent items, cleanup
    (type)                     → type filter / distribution
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from clipsync.database import Base


class ClipboardType(str, enum.Enum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_item_id() -> str:
    return str(uuid.uuid4())


class ClipboardItem(Base):
    """
    A single clipboard entry owned by one user.

    Items are never soft-deleted; delete is physical and always scoped to
    (id, user_id).
    """

    __tablename__ = "clipboard_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_item_id)

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    client_id: Mapped[str | None] = mapped_column(String(255), nullable=True, default=None)

    content: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Stored as a plain string so new types don't need a DB enum migration
    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ClipboardType.TEXT.value,
        server_default=text("'text'"),
    )

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        UniqueConstraint("user_id", "client_id", name="uq_clipboard_items_user_client"),
        Index("idx_clipboard_items_user_timestamp", "user_id", timestamp.desc()),
        Index("idx_clipboard_items_user_updated", "user_id", "updated_at"),
        Index("idx_clipboard_items_user_created", "user_id", "created_at"),
        Index("idx_clipboard_items_type", "type"),
    )

    def __repr__(self) -> str:
        return (
            f"<ClipboardItem(id={self.id}, user_id={self.user_id}, "
            f"client_id={self.client_id!r}, type='{self.type}')>"
        )
