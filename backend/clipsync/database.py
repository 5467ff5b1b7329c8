"""
ClipSync Backend — Database Session Management
===============================================

What:  Async SQLAlchemy engine wrapper, declarative base, and FastAPI dependency.
Why:   The store handle is an explicit value (`Database`) constructed at app
       creation and attached to `app.state`, so every test can build its own
       isolated instance instead of sharing a module-level engine.
How:   `Database` owns the engine and session factory. `get_db_session`
       reads it from the request's app and yields one session per request,
       committing on success and rolling back on error.

Connection Pooling Strategy (PostgreSQL):
    pool_size / max_overflow from settings, pool_pre_ping to catch stale
    connections, pool_recycle=3600.

SQLite:
    In-memory URLs use a StaticPool so every session shares one connection
    (otherwise each connection would see an empty database). File URLs use
    SQLAlchemy's default pool.
"""

import logging
from typing import AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from clipsync.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares a single metadata object used by Alembic and `Database.create_all`.
    """
    pass


def _is_memory_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.rstrip("/").endswith(":"))


def _configure_sqlite_connection(dbapi_connection, connection_record) -> None:
    # Let SQLAlchemy emit BEGIN itself so SAVEPOINTs (batch sync) behave
    dbapi_connection.isolation_level = None
    # SQLite ignores FOREIGN KEY / ON DELETE CASCADE unless enabled per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _begin_sqlite_transaction(conn) -> None:
    conn.exec_driver_sql("BEGIN")


class Database:
    """
    Explicit store handle: engine + session factory.

    Example:
        database = Database("sqlite+aiosqlite:///:memory:")
        await database.create_all()
        async with database.session() as session:
            ...
        await database.dispose()
    """

    def __init__(self, url: Optional[str] = None, config: Optional[Settings] = None):
        config = config or default_settings
        self.url = url or config.database_url

        engine_kwargs = {"echo": config.log_level == "DEBUG"}
        if self.url.startswith("sqlite"):
            if _is_memory_sqlite(self.url):
                engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        else:
            engine_kwargs.update(
                pool_size=config.db_pool_size,
                max_overflow=config.db_max_overflow,
                pool_pre_ping=config.db_pool_pre_ping,
                pool_recycle=3600,
            )

        self.engine: AsyncEngine = create_async_engine(self.url, **engine_kwargs)
        if self.url.startswith("sqlite"):
            event.listen(self.engine.sync_engine, "connect", _configure_sqlite_connection)
            event.listen(self.engine.sync_engine, "begin", _begin_sqlite_transaction)

        # expire_on_commit=False: response models are built after commit
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def session(self) -> AsyncSession:
        """Returns a new session; use as `async with database.session() as s`."""
        return self.session_factory()

    async def create_all(self) -> None:
        """Create all tables registered on Base.metadata (SQLite, tests, dev)."""
        # Import models so they register with Base.metadata
        from clipsync.models import clipboard_item, user  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema ensured on %s", self.dialect)

    async def ping(self) -> None:
        """Runs SELECT 1; raises on connectivity problems."""
        from sqlalchemy import text

        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def dispose(self) -> None:
        """Closes all pooled connections. Called on application shutdown."""
        await self.engine.dispose()


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Takes the Database attached to app.state at startup
        2. Yields a fresh session to the route handler
        3. Commits on success, rolls back on any error, always closes

    Example usage in a route:
        @router.get("/items")
        async def list_items(db: AsyncSession = Depends(get_db_session)):
            ...
    """
    database: Database = request.app.state.database
    async with database.session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
