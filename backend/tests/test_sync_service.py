"""
ClipSync Backend — Sync Reconciler Tests
=========================================

What:  SyncService against a real (in-memory SQLite) database.
Why:   The upsert, savepoint and ownership rules live in SQL; mocks would
       not exercise them.

What we test:
    ✅ Single-item sync idempotence (created → updated, same id, one row)
    ✅ Batch sync partial failure with per-item reasons
    ✅ Pagination, ordering and filters
    ✅ Ownership isolation (foreign item == missing item)
    ✅ Latest (updated_at) vs recent (created_at)
    ✅ Unauthenticated calls fail before touching the store
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy import delete, func, inspect, select
from sqlalchemy.exc import SQLAlchemyError

from clipsync.config import settings
from clipsync.database import Database
from clipsync.exceptions import (
    AuthError,
    ContentTooLargeError,
    InvalidContentTypeError,
    NotFoundError,
    UnparseableTimestampError,
    ValidationError,
)
from clipsync.models.clipboard_item import ClipboardItem
from clipsync.models.user import User
from clipsync.schemas.clipboard import ClipboardItemRequest
from clipsync.services.content_service import REDACTION_MARKER
from clipsync.services.sync_service import SyncService


async def _row_count(db_session, user_id) -> int:
    result = await db_session.execute(
        select(func.count(ClipboardItem.id)).where(ClipboardItem.user_id == user_id)
    )
    return result.scalar()


class TestCreateAndSingleSync:
    def setup_method(self):
        self.service = SyncService()

    @pytest.mark.asyncio
    async def test_create_item_defaults(self, db_session, make_user):
        user = await make_user("alice")
        item = await self.service.create_item(db_session, user.id, "hello")

        assert item.type == "text"
        assert item.client_id is None
        assert item.content == "hello"
        assert item.timestamp.tzinfo is not None

    @pytest.mark.asyncio
    async def test_create_item_is_sanitized(self, db_session, make_user):
        user = await make_user("alice")
        item = await self.service.create_item(db_session, user.id, "password=hunter2")
        assert item.content == REDACTION_MARKER

    @pytest.mark.asyncio
    async def test_create_item_rejects_bad_input(self, db_session, make_user):
        user = await make_user("alice")
        with pytest.raises(InvalidContentTypeError):
            await self.service.create_item(db_session, user.id, "x", content_type="video")
        with pytest.raises(UnparseableTimestampError):
            await self.service.create_item(db_session, user.id, "x", timestamp="someday")
        with pytest.raises(ContentTooLargeError):
            await self.service.create_item(db_session, user.id, "x" * (settings.max_content_size + 1))
        assert await _row_count(db_session, user.id) == 0

    @pytest.mark.asyncio
    async def test_single_sync_is_idempotent(self, db_session, make_user):
        user = await make_user("alice")

        first = await self.service.sync_single_item(
            db_session, user.id, "phone-1", "hello", "text", "2024-01-01T12:00:00Z"
        )
        second = await self.service.sync_single_item(
            db_session, user.id, "phone-1", "hello", "text", "2024-01-01T12:00:00Z"
        )

        assert first.created is True
        assert second.created is False
        assert first.item.id == second.item.id
        assert await _row_count(db_session, user.id) == 1

    @pytest.mark.asyncio
    async def test_single_sync_updates_same_row(self, db_session, make_user):
        user = await make_user("alice")
        first = await self.service.sync_single_item(db_session, user.id, "phone-1", "v1")

        third = await self.service.sync_single_item(
            db_session, user.id, "phone-1", "v2", "text", "2024-06-01 08:30:00"
        )

        assert third.created is False
        assert third.item.id == first.item.id
        assert third.item.client_id == "phone-1"
        assert third.item.content == "v2"
        assert third.item.timestamp == datetime(2024, 6, 1, 8, 30, tzinfo=timezone.utc)
        assert third.item.updated_at >= first.item.updated_at
        assert await _row_count(db_session, user.id) == 1

    @pytest.mark.asyncio
    async def test_single_sync_distinct_clients(self, db_session, make_user):
        user = await make_user("alice")
        a = await self.service.sync_single_item(db_session, user.id, "phone", "x")
        b = await self.service.sync_single_item(db_session, user.id, "laptop", "x")

        assert a.created and b.created
        assert a.item.id != b.item.id

    @pytest.mark.asyncio
    async def test_same_client_id_is_per_user(self, db_session, make_user):
        alice = await make_user("alice")
        bob = await make_user("bob")

        a = await self.service.sync_single_item(db_session, alice.id, "device", "from alice")
        b = await self.service.sync_single_item(db_session, bob.id, "device", "from bob")

        assert a.created and b.created
        assert a.item.id != b.item.id

    @pytest.mark.asyncio
    async def test_single_sync_requires_client_id(self, db_session, make_user):
        user = await make_user("alice")
        with pytest.raises(ValidationError):
            await self.service.sync_single_item(db_session, user.id, "  ", "x")

    @pytest.mark.asyncio
    async def test_missing_user_rejected_before_store(self):
        with pytest.raises(AuthError):
            await self.service.create_item(None, "", "hello")
        with pytest.raises(AuthError):
            await self.service.sync_single_item(None, None, "dev", "hello")
        with pytest.raises(AuthError):
            await self.service.list_items(None, "")


class TestBatchSync:
    def setup_method(self):
        self.service = SyncService()

    @pytest.mark.asyncio
    async def test_partial_failure(self, db_session, make_user):
        user = await make_user("alice")
        oversize = "y" * (settings.max_content_size + 1)
        items = [
            ClipboardItemRequest(content="first"),
            ClipboardItemRequest(content=oversize),
            ClipboardItemRequest(content="third", type="text", timestamp="1704110400"),
        ]

        result = await self.service.batch_sync(db_session, user.id, items, device_id="desktop")

        assert result.synced_count == 2
        assert result.failed_count == 1
        assert result.total == 3
        assert [item.content for item in result.synced] == ["first", "third"]
        assert result.failed[0].error == "content too large"
        assert result.failed[0].content == "y" * 50 + "..."

        listing = await self.service.list_items(db_session, user.id)
        assert listing.total == 2

    @pytest.mark.asyncio
    async def test_failure_reasons(self, db_session, make_user):
        user = await make_user("alice")
        items = [
            ClipboardItemRequest(content="bad type", type="video"),
            ClipboardItemRequest(content="bad time", timestamp="tomorrow-ish"),
            ClipboardItemRequest(content="fine", type=""),
        ]

        result = await self.service.batch_sync(db_session, user.id, items)

        assert [f.error for f in result.failed] == ["invalid content type", "invalid timestamp"]
        assert result.synced[0].type == "text"

    @pytest.mark.asyncio
    async def test_store_failure_is_reported_per_item(self, db_session, make_user):
        user = await make_user("alice")
        items = [ClipboardItemRequest(content="a"), ClipboardItemRequest(content="b")]

        with patch.object(db_session, "begin_nested", side_effect=SQLAlchemyError("disk I/O error")):
            result = await self.service.batch_sync(db_session, user.id, items)

        assert result.synced_count == 0
        assert [f.error for f in result.failed] == ["database error", "database error"]

    @pytest.mark.asyncio
    async def test_batch_does_not_dedup(self, db_session, make_user):
        user = await make_user("alice")
        items = [ClipboardItemRequest(content="same"), ClipboardItemRequest(content="same")]

        result = await self.service.batch_sync(db_session, user.id, items)

        assert result.synced_count == 2
        assert result.synced[0].id != result.synced[1].id

    @pytest.mark.asyncio
    async def test_empty_batch_rejected(self, db_session, make_user):
        user = await make_user("alice")
        with pytest.raises(ValidationError):
            await self.service.batch_sync(db_session, user.id, [])


class TestListing:
    def setup_method(self):
        self.service = SyncService()

    async def _seed(self, db_session, user_id, count):
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        for i in range(count):
            await self.service.create_item(
                db_session,
                user_id,
                f"item {i}",
                timestamp=(base + timedelta(minutes=i)).isoformat(),
            )

    @pytest.mark.asyncio
    async def test_second_page(self, db_session, make_user):
        user = await make_user("alice")
        await self._seed(db_session, user.id, 25)

        page = await self.service.list_items(db_session, user.id, page=2, page_size=20)

        assert len(page.items) == 5
        assert page.total == 25
        assert page.total_pages == 2
        assert page.has_next is False
        assert page.has_prev is True

    @pytest.mark.asyncio
    async def test_newest_first(self, db_session, make_user):
        user = await make_user("alice")
        await self._seed(db_session, user.id, 3)

        page = await self.service.list_items(db_session, user.id)

        assert [item.content for item in page.items] == ["item 2", "item 1", "item 0"]
        assert page.has_next is False
        assert page.has_prev is False

    @pytest.mark.asyncio
    async def test_out_of_range_paging_falls_back(self, db_session, make_user):
        user = await make_user("alice")
        await self._seed(db_session, user.id, 25)

        page = await self.service.list_items(db_session, user.id, page=0, page_size=500)

        assert page.page == 1
        assert page.page_size == 20
        assert len(page.items) == 20
        assert page.has_next is True

    @pytest.mark.asyncio
    async def test_empty_listing(self, db_session, make_user):
        user = await make_user("alice")
        page = await self.service.list_items(db_session, user.id)
        assert page.total == 0
        assert page.total_pages == 0
        assert page.items == []

    @pytest.mark.asyncio
    async def test_filters(self, db_session, make_user):
        user = await make_user("alice")
        await self.service.create_item(db_session, user.id, "old note", timestamp="2023-01-01T00:00:00Z")
        await self.service.create_item(db_session, user.id, "100% done", timestamp="2024-03-01T00:00:00Z")
        await self.service.create_item(
            db_session, user.id, "aGVsbG8=", content_type="image", timestamp="2024-03-02T00:00:00Z"
        )

        since = await self.service.list_items(db_session, user.id, since="2024-01-01 00:00:00")
        assert since.total == 2

        images = await self.service.list_items(db_session, user.id, content_type="image")
        assert [i.content for i in images.items] == ["aGVsbG8="]

        # "%" is matched literally, not as a wildcard
        percent = await self.service.list_items(db_session, user.id, search="0% d")
        assert [i.content for i in percent.items] == ["100% done"]
        wildcard = await self.service.list_items(db_session, user.id, search="%")
        assert wildcard.total == 1

    @pytest.mark.asyncio
    async def test_invalid_filters(self, db_session, make_user):
        user = await make_user("alice")
        with pytest.raises(ValidationError):
            await self.service.list_items(db_session, user.id, since="last week")
        with pytest.raises(InvalidContentTypeError):
            await self.service.list_items(db_session, user.id, content_type="video")


class TestOwnership:
    def setup_method(self):
        self.service = SyncService()

    @pytest.mark.asyncio
    async def test_foreign_item_looks_missing(self, db_session, make_user):
        alice = await make_user("alice")
        bob = await make_user("bob")
        item = await self.service.create_item(db_session, bob.id, "bob's secret plan")

        with pytest.raises(NotFoundError) as foreign:
            await self.service.get_item(db_session, alice.id, item.id)
        with pytest.raises(NotFoundError) as missing:
            await self.service.get_item(db_session, alice.id, "00000000-0000-0000-0000-000000000000")

        assert foreign.value.message == missing.value.message
        assert item.id not in foreign.value.message

    @pytest.mark.asyncio
    async def test_foreign_item_cannot_be_changed(self, db_session, make_user):
        alice = await make_user("alice")
        bob = await make_user("bob")
        item = await self.service.create_item(db_session, bob.id, "original")

        with pytest.raises(NotFoundError):
            await self.service.update_item(db_session, alice.id, item.id, "hijacked")
        with pytest.raises(NotFoundError):
            await self.service.delete_item(db_session, alice.id, item.id)

        still_there = await self.service.get_item(db_session, bob.id, item.id)
        assert still_there.content == "original"

    @pytest.mark.asyncio
    async def test_listing_is_scoped(self, db_session, make_user):
        alice = await make_user("alice")
        bob = await make_user("bob")
        await self.service.create_item(db_session, alice.id, "a")
        await self.service.create_item(db_session, bob.id, "b")

        page = await self.service.list_items(db_session, alice.id)
        assert [i.content for i in page.items] == ["a"]


class TestUpdateDeleteLatestRecent:
    def setup_method(self):
        self.service = SyncService()

    @pytest.mark.asyncio
    async def test_update_keeps_unspecified_fields(self, db_session, make_user):
        user = await make_user("alice")
        item = await self.service.create_item(
            db_session, user.id, "v1", content_type="file", timestamp="2024-01-01T12:00:00Z"
        )

        updated = await self.service.update_item(db_session, user.id, item.id, "v2")

        assert updated.content == "v2"
        assert updated.type == "file"
        assert updated.timestamp == item.timestamp

    @pytest.mark.asyncio
    async def test_update_rejects_invalid_type(self, db_session, make_user):
        user = await make_user("alice")
        item = await self.service.create_item(db_session, user.id, "v1")
        with pytest.raises(InvalidContentTypeError):
            await self.service.update_item(db_session, user.id, item.id, "v2", content_type="video")

    @pytest.mark.asyncio
    async def test_delete(self, db_session, make_user):
        user = await make_user("alice")
        item = await self.service.create_item(db_session, user.id, "bye")

        await self.service.delete_item(db_session, user.id, item.id)

        with pytest.raises(NotFoundError):
            await self.service.get_item(db_session, user.id, item.id)

    @pytest.mark.asyncio
    async def test_latest_requires_items(self, db_session, make_user):
        user = await make_user("alice")
        with pytest.raises(NotFoundError):
            await self.service.get_latest_item(db_session, user.id)

    @pytest.mark.asyncio
    async def test_latest_follows_updates_recent_follows_creation(self, db_session, make_user):
        user = await make_user("alice")
        first = await self.service.create_item(db_session, user.id, "first")
        second = await self.service.create_item(db_session, user.id, "second")

        await self.service.update_item(db_session, user.id, first.id, "first, edited")

        latest = await self.service.get_latest_item(db_session, user.id)
        recent = await self.service.get_recent_items(db_session, user.id)

        assert latest.id == first.id
        assert recent.items[0].id == second.id
        assert recent.total == 2

    @pytest.mark.asyncio
    async def test_recent_limit_bounds(self, db_session, make_user):
        user = await make_user("alice")
        for i in range(12):
            await self.service.create_item(db_session, user.id, f"n{i}")

        assert len((await self.service.get_recent_items(db_session, user.id, limit=0)).items) == 10
        assert len((await self.service.get_recent_items(db_session, user.id, limit=3)).items) == 3
        assert len((await self.service.get_recent_items(db_session, user.id, limit=500)).items) == 12


class TestPurge:
    @pytest.mark.asyncio
    async def test_purge_older_than(self, db_session, make_user):
        service = SyncService()
        user = await make_user("alice")
        await service.create_item(db_session, user.id, "keep")

        future = datetime.now(timezone.utc) + timedelta(days=31)
        removed = await service.purge_older_than(db_session, days=30, now=future)
        assert removed == 1

        removed_again = await service.purge_older_than(db_session, days=30)
        assert removed_again == 0


class TestConcurrentSingleSync:
    """File-backed database: every session gets its own connection."""

    @pytest.mark.asyncio
    async def test_simultaneous_syncs_share_one_row(self, tmp_path):
        service = SyncService()
        database = Database(f"sqlite+aiosqlite:///{tmp_path / 'sync.db'}")
        await database.create_all()
        try:
            async with database.session() as session:
                user = User(
                    username="alice",
                    email="alice@example.com",
                    password_salt="",
                    password_hash="unused",
                )
                session.add(user)
                await session.commit()

            async def sync_once(n: int):
                async with database.session() as session:
                    result = await service.sync_single_item(session, user.id, "phone-1", f"v{n}")
                    await session.commit()
                    return result

            results = await asyncio.gather(*(sync_once(n) for n in range(10)))

            async with database.session() as session:
                rows = await _row_count(session, user.id)

            assert rows == 1
            assert [r.created for r in results].count(True) == 1
            assert len({r.item.id for r in results}) == 1
        finally:
            await database.dispose()


class TestOwnerRemoval:
    @pytest.mark.asyncio
    async def test_deleting_user_removes_items(self, db_session, make_user):
        service = SyncService()
        alice = await make_user("alice")
        bob = await make_user("bob")
        await service.create_item(db_session, alice.id, "a1")
        await service.sync_single_item(db_session, alice.id, "phone", "a2")
        await service.create_item(db_session, bob.id, "b1")

        await db_session.execute(delete(User).where(User.id == alice.id))

        assert await _row_count(db_session, alice.id) == 0
        assert await _row_count(db_session, bob.id) == 1
        assert inspect(ClipboardItem).relationships.keys() == []
