"""
ClipSync Backend — User SQLAlchemy Model
=========================================

What:  ORM model representing the `users` table.
How:   Inherits from the shared DeclarativeBase; Alembic reads it for migrations.
Who:   Used by AuthService for registration, login, token bookkeeping.

Table Design Rationale:
    - String UUID primary key: portable between PostgreSQL and SQLite
    - password_salt: empty string marks a legacy (pre-salt) bcrypt hash that
      is upgraded on the user's next successful login
    - session_token: last issued token only; tokens are stateless, so clearing
      this on logout is bookkeeping, not revocation
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from clipsync.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """
    An account owning clipboard items.

    Lifecycle:
        1. Created at registration with a fresh salt + salted hash
        2. Salt + hash rewritten on password change, admin reset, or the
           first successful login with a legacy hash
        3. session_token rewritten on login/refresh, cleared on logout
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    username: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)

    # bcrypt output; never serialized into API responses
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # 64 hex chars for salted hashes, "" for legacy hashes
    password_salt: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default="",
        server_default=text("''"),
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
    )

    session_token: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)

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

    @property
    def has_legacy_hash(self) -> bool:
        return not self.password_salt

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}', active={self.is_active})>"
