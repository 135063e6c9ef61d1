"""
Wastebin: Schema Migration Tests
==================================

What we test:
    ✅ Migration 1 over a populated v0 table keeps every row and column value
    ✅ fork_of exists afterwards and is NULL for old rows
    ✅ Re-applying a migration is a no-op
    ✅ Unknown versions and a missing table are reported
    ✅ A failing step raises MigrationError naming the step, with a recovery hint
    ✅ A stalled database fails the check instead of waiting forever
"""

import pytest
from sqlalchemy import inspect, text

from wastebin.exceptions import MigrationError, NotFoundError, StorageError
from wastebin.paste import Paste
from wastebin.services import migrations as migrations_module
from wastebin.services.migrations import MIGRATIONS, SchemaMigrator, Step


async def table_names(engine):
    async with engine.connect() as conn:
        return await conn.run_sync(lambda c: set(inspect(c).get_table_names()))


async def column_names(engine):
    async with engine.connect() as conn:
        return await conn.run_sync(lambda c: {col["name"] for col in inspect(c).get_columns("pastes")})


async def all_rows(engine):
    async with engine.connect() as conn:
        result = await conn.execute(text("SELECT * FROM pastes ORDER BY uuid"))
        return [dict(row) for row in result.mappings().all()]


class TestCurrentVersion:

    @pytest.mark.asyncio
    async def test_no_table(self, migrator):
        assert await migrator.current_version() is None

    @pytest.mark.asyncio
    async def test_legacy_table(self, legacy_store, migrator):
        assert await migrator.current_version() == 0

    @pytest.mark.asyncio
    async def test_installed_table_is_latest(self, store, migrator):
        assert await migrator.current_version() == max(MIGRATIONS)


class TestApplyForkOf:

    @pytest.mark.asyncio
    async def test_one_row_migration(self, legacy_store, migrator, engine):
        paste = Paste.new("keep me", "haskell")
        await legacy_store.create(paste)
        before = await all_rows(engine)

        result = await migrator.apply(1)

        assert result.applied is True
        assert result.rows_copied == 1
        assert await legacy_store.count() == 1

        after = await all_rows(engine)
        assert len(after) == 1
        for column in ("uuid", "date", "raw", "mode"):
            assert after[0][column] == before[0][column]
        assert after[0]["fork_of"] is None

    @pytest.mark.asyncio
    async def test_many_rows_survive(self, legacy_store, migrator):
        for i in range(25):
            await legacy_store.create(Paste.new(f"paste {i}", "_plain_"))
        listed_before = [p.id for p in await legacy_store.list()]

        await migrator.apply(1)

        assert await legacy_store.count() == 25
        assert [p.id for p in await legacy_store.list()] == listed_before

    @pytest.mark.asyncio
    async def test_leaves_only_the_pastes_table(self, legacy_store, migrator, engine):
        await migrator.apply(1)

        assert "fork_of" in await column_names(engine)
        tables = await table_names(engine)
        assert "pastes" in tables
        assert MIGRATIONS[1].temporary_name not in tables
        assert await migrator.current_version() == 1

    @pytest.mark.asyncio
    async def test_store_usable_after_migration(self, legacy_store, migrator):
        await migrator.apply(1)
        paste = Paste.new("after", "go")
        await legacy_store.create(paste)
        assert (await legacy_store.load_by_id(paste.id)).mode == "go"

    @pytest.mark.asyncio
    async def test_second_apply_is_noop(self, legacy_store, migrator):
        await legacy_store.create(Paste.new("x", "_plain_"))
        await migrator.apply(1)

        result = await migrator.apply(1)
        assert result.applied is False
        assert result.rows_copied is None
        assert await legacy_store.count() == 1

    @pytest.mark.asyncio
    async def test_already_current_install_is_noop(self, store, migrator):
        result = await migrator.apply(1)
        assert result.applied is False


class TestApplyErrors:

    @pytest.mark.asyncio
    async def test_unknown_version(self, legacy_store, migrator):
        with pytest.raises(NotFoundError):
            await migrator.apply(99)

    @pytest.mark.asyncio
    async def test_missing_table(self, migrator):
        with pytest.raises(MigrationError) as exc_info:
            await migrator.apply(1)
        assert exc_info.value.step == Step.CHECK.value

    @pytest.mark.asyncio
    async def test_leftover_temporary_table_fails_at_create(self, legacy_store, migrator, engine):
        """A temp table from an earlier crash stops the run before any data moves."""
        async with engine.begin() as conn:
            await conn.execute(text(f"CREATE TABLE {MIGRATIONS[1].temporary_name} (x INTEGER)"))
        await legacy_store.create(Paste.new("safe", "_plain_"))

        with pytest.raises(MigrationError) as exc_info:
            await migrator.apply(1)

        error = exc_info.value
        assert error.step == Step.CREATE.value
        assert MIGRATIONS[1].temporary_name in error.recovery
        assert error.context["step"] == "create"
        assert await legacy_store.count() == 1
        assert "fork_of" not in await column_names(engine)

    @pytest.mark.asyncio
    async def test_rename_failure_names_step(self, legacy_store, migrator, engine, monkeypatch):
        """Failure after the drop: the data lives only in the temporary table."""
        await legacy_store.create(Paste.new("stranded", "_plain_"))

        def broken_rename(op, migration):
            raise RuntimeError("disk full")

        monkeypatch.setattr(migrations_module, "rename_temporary_table", broken_rename)

        with pytest.raises(MigrationError) as exc_info:
            await migrator.apply(1)

        error = exc_info.value
        assert error.step == Step.RENAME.value
        assert "by hand" in error.recovery
        tables = await table_names(engine)
        assert "pastes" not in tables
        assert MIGRATIONS[1].temporary_name in tables


class TestTimeouts:
    """The engine has one pooled connection; holding it stalls the migrator."""

    @pytest.mark.asyncio
    async def test_check_timeout_changes_nothing(self, legacy_store, engine):
        migrator = SchemaMigrator(engine, timeout=0.1)
        async with engine.connect() as held:
            await held.execute(text("SELECT 1"))
            with pytest.raises(MigrationError) as exc_info:
                await migrator.apply(1)

        assert exc_info.value.step == Step.CHECK.value
        assert "timed out" in exc_info.value.message
        assert "fork_of" not in await column_names(engine)

    @pytest.mark.asyncio
    async def test_current_version_timeout(self, store, engine):
        migrator = SchemaMigrator(engine, timeout=0.1)
        async with engine.connect() as held:
            await held.execute(text("SELECT 1"))
            with pytest.raises(StorageError) as exc_info:
                await migrator.current_version()

        assert exc_info.value.context["operation"] == "schema_version"
        assert await migrator.current_version() == 1
