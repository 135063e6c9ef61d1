"""
Wastebin: Schema Migrations
=============================

What:  Versioned upgrades of the `pastes` table.
Why:   SQLite cannot add a column with constraints in place, so a schema change
       rebuilds the table by copying it.
How:   Every migration runs the same four steps:

           1. create   new-schema table under a temporary name (pastes_v<N>)
           2. copy     INSERT INTO tmp (shared cols) SELECT shared cols FROM pastes
           3. drop     the old table
           4. rename   the temporary table to the original name

       Each step runs in its own transaction. The migration as a whole is NOT
       atomic: a failure at drop or rename leaves both tables or only the
       temporary one behind. MigrationError names the step and tells the
       operator what to finish by hand.

Registry:
    MIGRATIONS maps version → Migration. A migration is "applied" when the
    table already has all the columns it adds; applying it again is a no-op.

Reuse:
    The step functions take an Alembic `Operations` object, so the Alembic
    revision for a version calls exactly the code the admin endpoint runs.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Tuple, TypeVar

from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import MetaData, Table, inspect, insert, select
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import AsyncEngine

from wastebin.exceptions import MigrationError, NotFoundError, StorageError
from wastebin.models.paste import PasteRecord
from wastebin.schemas.paste import MigrationResult

logger = logging.getLogger(__name__)

TABLE_NAME = PasteRecord.__tablename__

T = TypeVar("T")


class Step(str, Enum):
    CHECK = "check"
    CREATE = "create"
    COPY = "copy"
    DROP = "drop"
    RENAME = "rename"


@dataclass(frozen=True)
class Migration:
    """
    One schema version.

    Attributes:
        version:        Version number reached by applying this migration
        description:    Short human-readable summary
        added_columns:  Columns this version introduces; their presence marks
                        the migration as applied
        target:         Builds the target table definition under a given name
    """

    version: int
    description: str
    added_columns: Tuple[str, ...]
    target: Callable[[str], Table]

    @property
    def temporary_name(self) -> str:
        return f"{TABLE_NAME}_v{self.version}"

    def is_applied(self, conn: Connection) -> bool:
        columns = {column["name"] for column in inspect(conn).get_columns(TABLE_NAME)}
        return set(self.added_columns) <= columns


def _current_schema(name: str) -> Table:
    return PasteRecord.__table__.to_metadata(MetaData(), name=name)


MIGRATIONS: Dict[int, Migration] = {
    1: Migration(
        version=1,
        description="add fork_of column",
        added_columns=("fork_of",),
        target=_current_schema,
    ),
}


# ── Steps ─────────────────────────────────────────────────────────────────
# Synchronous, one Operations object each; shared with the Alembic revisions.

def create_temporary_table(op: Operations, migration: Migration) -> Table:
    table = migration.target(migration.temporary_name)
    table.create(op.get_bind())
    return table


def copy_rows(op: Operations, migration: Migration) -> int:
    """Set-based copy of every shared column; returns the number of rows copied."""
    bind = op.get_bind()
    source = Table(TABLE_NAME, MetaData(), autoload_with=bind)
    target = Table(migration.temporary_name, MetaData(), autoload_with=bind)
    shared = [column.name for column in target.columns if column.name in source.c]
    result = bind.execute(
        insert(target).from_select(shared, select(*(source.c[name] for name in shared)))
    )
    return result.rowcount


def drop_old_table(op: Operations, migration: Migration) -> None:
    op.drop_table(TABLE_NAME)


def rename_temporary_table(op: Operations, migration: Migration) -> None:
    op.rename_table(migration.temporary_name, TABLE_NAME)


def rebuild_table(op: Operations, migration: Migration) -> int:
    """All four steps back to back, for callers that manage their own transaction."""
    create_temporary_table(op, migration)
    copied = copy_rows(op, migration)
    drop_old_table(op, migration)
    rename_temporary_table(op, migration)
    return copied


def _recovery_hint(step: Step, migration: Migration) -> Optional[str]:
    tmp = migration.temporary_name
    if step == Step.CREATE:
        return f"No data changed. If table '{tmp}' exists from an earlier attempt, drop it and retry."
    if step == Step.COPY:
        return f"Table '{TABLE_NAME}' is untouched. Drop table '{tmp}' and retry."
    if step == Step.DROP:
        return (
            f"All rows were copied into '{tmp}' but '{TABLE_NAME}' still exists. "
            f"Drop '{TABLE_NAME}' and rename '{tmp}' to '{TABLE_NAME}' by hand."
        )
    if step == Step.RENAME:
        return (
            f"Table '{TABLE_NAME}' was dropped and its rows are in '{tmp}'. "
            f"Rename '{tmp}' to '{TABLE_NAME}' by hand."
        )
    return None


class SchemaMigrator:
    """
    Applies registered migrations against the app's engine.

    Args:
        engine:      The app's AsyncEngine
        migrations:  Version registry (defaults to MIGRATIONS)
        timeout:     Seconds allowed for the version check and for each step;
                     None waits forever
    """

    def __init__(
        self,
        engine: AsyncEngine,
        migrations: Optional[Dict[int, Migration]] = None,
        timeout: Optional[float] = None,
    ):
        self.engine = engine
        self.migrations = migrations if migrations is not None else MIGRATIONS
        self.timeout = timeout

    async def _inspect(self, inspection: Callable[[Connection], T]) -> T:
        async def run() -> T:
            async with self.engine.connect() as conn:
                return await conn.run_sync(inspection)

        return await asyncio.wait_for(run(), timeout=self.timeout)

    async def current_version(self) -> Optional[int]:
        """
        Highest applied version; 0 for the original schema, None without a table.

        Raises:
            StorageError: the inspection did not finish within `timeout`
        """

        def probe(conn: Connection) -> Optional[int]:
            if not inspect(conn).has_table(TABLE_NAME):
                return None
            version = 0
            for number in sorted(self.migrations):
                if not self.migrations[number].is_applied(conn):
                    break
                version = number
            return version

        try:
            return await self._inspect(probe)
        except asyncio.TimeoutError:
            logger.error("Schema version check timed out after %ss", self.timeout)
            raise StorageError(
                message="The paste store did not respond in time.",
                context={"operation": "schema_version", "timeout": self.timeout},
            )

    async def _step(self, migration: Migration, step: Step, action: Callable[[Operations, Migration], object]):
        def run(conn: Connection):
            return action(Operations(MigrationContext.configure(conn)), migration)

        async def transaction():
            async with self.engine.begin() as conn:
                return await conn.run_sync(run)

        try:
            result = await asyncio.wait_for(transaction(), timeout=self.timeout)
        except Exception as e:
            hint = _recovery_hint(step, migration)
            detail = f"timed out after {self.timeout}s" if isinstance(e, asyncio.TimeoutError) else str(e)
            logger.error(
                "Migration %d failed at step '%s': %s | Recovery: %s",
                migration.version, step.value, detail, hint,
            )
            raise MigrationError(migration.version, step.value, detail, recovery=hint) from e
        logger.info("Migration %d: step '%s' done", migration.version, step.value)
        return result

    async def apply(self, version: int) -> MigrationResult:
        """
        Apply one migration unless it is already in place.

        Raises:
            NotFoundError: no migration has this version
            MigrationError: the table is missing, or a check or step failed or
                            timed out
        """
        migration = self.migrations.get(version)
        if migration is None:
            raise NotFoundError(resource="migration", resource_id=str(version))

        def check(conn: Connection) -> Optional[bool]:
            if not inspect(conn).has_table(TABLE_NAME):
                return None
            return migration.is_applied(conn)

        try:
            applied = await self._inspect(check)
        except asyncio.TimeoutError as e:
            raise MigrationError(
                version, Step.CHECK.value, f"timed out after {self.timeout}s",
                recovery="No data changed. Retry when the database is free.",
            ) from e

        if applied is None:
            raise MigrationError(
                version, Step.CHECK.value, f"table '{TABLE_NAME}' does not exist",
                recovery="Run /install first.",
            )
        if applied:
            logger.info("Migration %d already applied; skipping", version)
            return MigrationResult(version=version, description=migration.description, applied=False)

        logger.info("Applying migration %d: %s", version, migration.description)
        await self._step(migration, Step.CREATE, create_temporary_table)
        copied = await self._step(migration, Step.COPY, copy_rows)
        await self._step(migration, Step.DROP, drop_old_table)
        await self._step(migration, Step.RENAME, rename_temporary_table)
        logger.info("Migration %d complete: %d rows copied", version, copied)

        return MigrationResult(
            version=version,
            description=migration.description,
            applied=True,
            rows_copied=copied,
        )
