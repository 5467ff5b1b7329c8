"""
ClipSync Backend — Test Configuration (conftest.py)
====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every test gets its own in-memory SQLite Database (aiosqlite), so
       tests never share rows and need no running PostgreSQL.

Fixture Hierarchy (all function-scoped):
    database
    ├── db_session:   AsyncSession for service-level tests
    ├── test_client:  HTTPX AsyncClient around create_app(database)
    └── make_user:    factory inserting a user (salted or legacy hash)
"""

import os

# Override settings BEFORE any clipsync import: the settings object and the
# service singletons read them at import time.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret-key-with-enough-length"
os.environ["BCRYPT_ROUNDS"] = "4"  # Fast hashing in tests
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"  # Reduce noise during tests
os.environ["ENVIRONMENT"] = "test"

from typing import Optional

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from clipsync.database import Database
from clipsync.models.user import User
from clipsync.services.credential_service import credential_service

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def database():
    """Fresh in-memory database with the full schema."""
    db = Database(TEST_DATABASE_URL)
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def db_session(database):
    """
    One session for service-level tests.

    Services only flush; call `await db_session.commit()` before opening a
    second session on the same database (all sessions share one connection).
    """
    async with database.session() as session:
        yield session


@pytest_asyncio.fixture
async def test_client(database):
    """
    HTTPX AsyncClient routed straight into the ASGI app.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from clipsync.main import create_app

    app = create_app(database)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def make_user(db_session):
    """
    Factory inserting a user directly.

    Usage:
        user = await make_user("alice", "secret123")
        legacy = await make_user("bob", "secret123", legacy=True)
    """

    async def _make(
        username: str,
        password: str = "password123",
        email: Optional[str] = None,
        legacy: bool = False,
        is_active: bool = True,
    ) -> User:
        if legacy:
            salt, hashed = "", credential_service.hash_legacy(password)
        else:
            salt, hashed = credential_service.new_credentials(password)
        user = User(
            username=username,
            email=email or f"{username}@example.com",
            password_salt=salt,
            password_hash=hashed,
            is_active=is_active,
        )
        db_session.add(user)
        await db_session.flush()
        return user

    return _make


async def register_and_login(client: AsyncClient, username: str, password: str = "password123") -> str:
    """Registers through the API and returns the bearer token."""
    response = await client.post(
        "/api/v1/auth/register",
        json={"username": username, "email": f"{username}@example.com", "password": password},
    )
    assert response.status_code == 201, response.text
    return response.json()["token"]


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
