"""
Wastebin: Paste Store Tests
=============================

Runs against real SQLite files (one per test, see conftest.py).

What we test:
    ✅ create → load round trip; the creation time is stamped by the store
    ✅ Saving the same paste twice raises AlreadyPersistedError
    ✅ Delete is idempotent and count() tracks inserts minus deletes
    ✅ Listing is newest first, pages neither overlap nor skip rows
    ✅ Corrupt rows: an error on load, skipped in listings
    ✅ Engine failures surface as StorageError
    ✅ A call that outlives the store timeout is abandoned with StorageError
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import text

from wastebin.exceptions import (
    AlreadyPersistedError,
    CorruptRowError,
    NotFoundError,
    StorageError,
)
from wastebin.paste import Paste
from wastebin.services.paste_store import PAGE_SIZE, PasteStore

UNKNOWN_ID = "00000000-0000-4000-8000-000000000000"


async def insert_raw_row(engine, uuid, date, raw, mode):
    async with engine.begin() as conn:
        await conn.execute(
            text("INSERT INTO pastes (uuid, date, raw, mode) VALUES (:uuid, :date, :raw, :mode)"),
            {"uuid": uuid, "date": date, "raw": raw, "mode": mode},
        )


class TestCreateAndLoad:

    @pytest.mark.asyncio
    async def test_round_trip(self, store):
        """A loaded paste has the same body, mode and id as the one saved."""
        paste = Paste.new("The quick brown fox jumps over the lazy dog.", "_plain_")
        await paste.save(store)

        loaded = await store.load_by_id(paste.id)
        assert loaded.id == paste.id
        assert loaded.body == paste.body
        assert loaded.mode == paste.mode
        assert loaded.created_at == paste.created_at

    @pytest.mark.asyncio
    async def test_save_stamps_creation_time(self, store, fixed_clock):
        expected = fixed_clock.now
        paste = Paste.new("x", "_plain_")
        await store.create(paste)
        assert paste.created_at == expected
        assert paste.is_saved

    @pytest.mark.asyncio
    async def test_creation_time_is_whole_seconds(self, engine):
        clock = lambda: datetime(2024, 1, 15, 12, 0, 0, 987654, tzinfo=timezone.utc)
        store = PasteStore(engine, clock=clock)
        await store.create_schema()
        paste = Paste.new("x", "_plain_")
        await store.create(paste)

        loaded = await store.load_by_id(paste.id)
        assert paste.created_at.microsecond == 0
        assert loaded.created_at == paste.created_at

    @pytest.mark.asyncio
    async def test_body_is_stored_verbatim(self, store):
        body = "<script>alert('x')</script>\n\ttabs & ümlauts\r\n"
        paste = Paste.new(body, "xml")
        await store.create(paste)
        assert (await store.load_by_id(paste.id)).body == body

    @pytest.mark.asyncio
    async def test_load_accepts_lower_case_id(self, store):
        paste = Paste.new("x", "_plain_")
        await store.create(paste)
        assert (await store.load_by_id(paste.id.lower())).id == paste.id

    @pytest.mark.asyncio
    async def test_saving_twice_is_rejected(self, store):
        paste = Paste.new("once", "_plain_")
        await paste.save(store)

        with pytest.raises(AlreadyPersistedError):
            await paste.save(store)
        assert await store.count() == 1

    @pytest.mark.asyncio
    async def test_load_unknown_id(self, store):
        with pytest.raises(NotFoundError):
            await store.load_by_id(UNKNOWN_ID)


class TestDeleteAndCount:

    @pytest.mark.asyncio
    async def test_count_empty(self, store):
        assert await store.count() == 0

    @pytest.mark.asyncio
    async def test_delete_removes_paste(self, store):
        paste = Paste.new("bye", "_plain_")
        await paste.save(store)
        await paste.delete(store)

        with pytest.raises(NotFoundError):
            await store.load_by_id(paste.id)

    @pytest.mark.asyncio
    async def test_delete_unknown_is_noop(self, store):
        await store.create(Paste.new("stay", "_plain_"))
        await store.delete_by_id(UNKNOWN_ID)
        assert await store.count() == 1

    @pytest.mark.asyncio
    async def test_count_tracks_inserts_and_deletes(self, store):
        pastes = [Paste.new(f"paste {i}", "_plain_") for i in range(7)]
        for paste in pastes:
            await store.create(paste)
        for paste in pastes[:3]:
            await store.delete_by_id(paste.id)
        assert await store.count() == 4


class TestList:

    @pytest.mark.asyncio
    async def test_newest_first(self, store):
        first = Paste.new("first", "_plain_")
        second = Paste.new("second", "_plain_")
        await store.create(first)
        await store.create(second)

        listed = await store.list()
        assert [p.id for p in listed] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_pages_cover_everything_once(self, store):
        total = PAGE_SIZE * 2 + 7
        for i in range(total):
            await store.create(Paste.new(f"paste {i}", "_plain_"))

        pages = [await store.list(offset=offset) for offset in range(0, total, PAGE_SIZE)]
        assert [len(page) for page in pages] == [PAGE_SIZE, PAGE_SIZE, 7]

        combined = [paste for page in pages for paste in page]
        assert len({p.id for p in combined}) == total
        dates = [p.created_at for p in combined]
        assert dates == sorted(dates, reverse=True)
        assert len(set(dates)) == total

    @pytest.mark.asyncio
    async def test_same_second_pastes_page_stably(self, engine):
        """Identical timestamps are ordered by id, so paging stays consistent."""
        frozen = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
        store = PasteStore(engine, clock=lambda: frozen)
        await store.create_schema()
        for i in range(PAGE_SIZE + 10):
            await store.create(Paste.new(f"paste {i}", "_plain_"))

        first = await store.list(offset=0)
        second = await store.list(offset=PAGE_SIZE)
        ids = [p.id for p in first + second]
        assert len(ids) == PAGE_SIZE + 10
        assert len(set(ids)) == len(ids)
        assert ids == sorted(ids, reverse=True)

    @pytest.mark.asyncio
    async def test_offset_past_end(self, store):
        await store.create(Paste.new("only", "_plain_"))
        assert await store.list(offset=PAGE_SIZE) == []

    @pytest.mark.asyncio
    async def test_corrupt_rows_are_skipped(self, store, engine):
        good = Paste.new("good", "_plain_")
        await store.create(good)
        await insert_raw_row(engine, "11111111-1111-4111-8111-111111111111", None, "no date", "_plain_")
        await insert_raw_row(engine, "22222222-2222-4222-8222-222222222222", "garbage", "bad date", "_plain_")

        listed = await store.list()
        assert [p.id for p in listed] == [good.id]
        assert await store.count() == 3

    @pytest.mark.asyncio
    async def test_non_canonical_ids_are_skipped(self, store, engine):
        good = Paste.new("good", "_plain_")
        await store.create(good)
        for stored in (
            "0f1e2d3c4b5a49788695a4b3c2d1e0f0",
            "{0F1E2D3C-4B5A-4978-8695-A4B3C2D1E0F1}",
            "urn:uuid:0f1e2d3c-4b5a-4978-8695-a4b3c2d1e0f2",
        ):
            await insert_raw_row(engine, stored, "2024-01-15T12:00:00+0000", "odd id", "_plain_")

        listed = await store.list()
        assert [p.id for p in listed] == [good.id]
        assert await store.count() == 4


class TestCorruptLoad:

    @pytest.mark.asyncio
    async def test_missing_mode(self, store, engine):
        paste_id = "33333333-3333-4333-8333-333333333333"
        await insert_raw_row(engine, paste_id, "2024-01-15T12:00:00+0000", "body", None)

        with pytest.raises(CorruptRowError) as exc_info:
            await store.load_by_id(paste_id)
        assert exc_info.value.field == "mode"
        assert exc_info.value.reason == CorruptRowError.MISSING

    @pytest.mark.asyncio
    async def test_unparsable_date(self, store, engine):
        paste_id = "44444444-4444-4444-8444-444444444444"
        await insert_raw_row(engine, paste_id, "15/01/2024", "body", "_plain_")

        with pytest.raises(CorruptRowError) as exc_info:
            await store.load_by_id(paste_id)
        assert exc_info.value.field == "date"
        assert exc_info.value.reason == CorruptRowError.UNPARSABLE


class TestStorageErrors:

    @pytest.mark.asyncio
    async def test_missing_table_is_storage_error(self, engine):
        store = PasteStore(engine)
        with pytest.raises(StorageError):
            await store.count()

    @pytest.mark.asyncio
    async def test_failed_insert_leaves_paste_unsaved(self, engine):
        store = PasteStore(engine)
        paste = Paste.new("x", "_plain_")
        with pytest.raises(StorageError):
            await store.create(paste)
        assert not paste.is_saved

    @pytest.mark.asyncio
    async def test_create_schema_twice(self, store):
        with pytest.raises(StorageError):
            await store.create_schema()

    @pytest.mark.asyncio
    async def test_has_table(self, engine):
        store = PasteStore(engine)
        assert not await store.has_table()
        await store.create_schema()
        assert await store.has_table()


class TestTimeouts:
    """The engine has one pooled connection; holding it stalls every store call."""

    @pytest.mark.asyncio
    async def test_stalled_count_is_storage_error(self, store, engine):
        impatient = PasteStore(engine, timeout=0.1)
        async with engine.connect() as held:
            await held.execute(text("SELECT 1"))
            with pytest.raises(StorageError) as exc_info:
                await impatient.count()

        assert exc_info.value.context["operation"] == "count"
        assert exc_info.value.context["timeout"] == 0.1
        assert await impatient.count() == 0

    @pytest.mark.asyncio
    async def test_stalled_create_leaves_paste_unsaved(self, store, engine):
        impatient = PasteStore(engine, timeout=0.1)
        paste = Paste.new("late", "_plain_")
        async with engine.connect() as held:
            await held.execute(text("SELECT 1"))
            with pytest.raises(StorageError) as exc_info:
                await impatient.create(paste)

        assert exc_info.value.context["operation"] == "create"
        assert not paste.is_saved
        assert await store.count() == 0

    @pytest.mark.asyncio
    async def test_stalled_has_table(self, engine):
        impatient = PasteStore(engine, timeout=0.1)
        async with engine.connect() as held:
            await held.execute(text("SELECT 1"))
            with pytest.raises(StorageError) as exc_info:
                await impatient.has_table()

        assert exc_info.value.context["operation"] == "has_table"

    @pytest.mark.asyncio
    async def test_stalled_install(self, engine):
        impatient = PasteStore(engine, timeout=0.1)
        async with engine.connect() as held:
            await held.execute(text("SELECT 1"))
            with pytest.raises(StorageError) as exc_info:
                await impatient.create_schema()

        assert exc_info.value.context["operation"] == "install"
        assert not await impatient.has_table()


class TestLegacySchema:

    @pytest.mark.asyncio
    async def test_store_works_before_migration(self, legacy_store):
        """Nothing the store does touches fork_of, so a v0 table is usable."""
        paste = Paste.new("old table", "ruby")
        await legacy_store.create(paste)

        loaded = await legacy_store.load_by_id(paste.id)
        assert loaded.body == "old table"
        assert [p.id for p in await legacy_store.list()] == [paste.id]
        assert await legacy_store.count() == 1
