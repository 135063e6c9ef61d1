"""
Wastebin: Paste Store (Entity Store)
======================================

What:  Durable create / load / list / count / delete for pastes.
How:   Each operation opens a session from the store's own session factory,
       runs one statement, and commits. Engine errors become StorageError and
       are never retried; every call is bounded by `timeout` seconds.
Who:   Built by the app factory around the app's engine; route handlers reach
       it through the `get_store` dependency.

Query patterns:
    - load:   SELECT ... WHERE uuid = :id                (primary key)
    - list:   SELECT ... ORDER BY date DESC, uuid DESC
              LIMIT :limit OFFSET :offset                 (ix_pastes_date)
    - count:  SELECT count(uuid)

    uuid is the tie-breaker for pastes created within the same second, so
    consecutive pages never repeat or skip a row.

Column selection:
    Only the columns present in every schema version are read and written
    (fork_of is written only when set), so the store works before and after
    migration 1.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

from sqlalchemy import delete, desc, func, insert, inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from wastebin.exceptions import (
    AlreadyPersistedError,
    CorruptRowError,
    NotFoundError,
    StorageError,
)
from wastebin.models.paste import PasteRecord
from wastebin.paste import Paste, format_timestamp

logger = logging.getLogger(__name__)

PAGE_SIZE = 50

T = TypeVar("T")

_PASTE_COLUMNS = (PasteRecord.uuid, PasteRecord.date, PasteRecord.raw, PasteRecord.mode)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PasteStore:
    """
    Data access for Paste rows.

    Args:
        engine:   The app's AsyncEngine (owned by the caller)
        timeout:  Seconds before a single operation is abandoned; None waits
                  forever
        clock:    Source of creation timestamps (tests inject a fake one)
    """

    def __init__(
        self,
        engine: AsyncEngine,
        timeout: Optional[float] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.engine = engine
        self.timeout = timeout
        self._clock = clock
        self._sessions = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def _bounded(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error("Store operation '%s' timed out after %ss", operation, self.timeout)
            raise StorageError(
                message="The paste store did not respond in time.",
                context={"operation": operation, "timeout": self.timeout},
            )

    async def _run(self, operation: str, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async def transaction() -> T:
            async with self._sessions() as session:
                try:
                    result = await work(session)
                    await session.commit()
                    return result
                except Exception:
                    await session.rollback()
                    raise

        try:
            return await self._bounded(operation, transaction())
        except SQLAlchemyError as e:
            logger.error("Store operation '%s' failed: %s", operation, str(e))
            raise StorageError(context={"operation": operation, "error_type": type(e).__name__})

    # ── Writes ────────────────────────────────────────────────────────────

    async def create(self, paste: Paste) -> Paste:
        """
        Persist a new paste and stamp its creation time.

        Raises:
            AlreadyPersistedError: the paste already has a created_at
            StorageError: the insert failed
        """
        if paste.is_saved:
            raise AlreadyPersistedError(paste.id)

        # Stored text has second precision; keep the in-memory value identical
        created_at = self._clock().astimezone(timezone.utc).replace(microsecond=0)
        values = {
            "uuid": paste.id,
            "date": format_timestamp(created_at),
            "raw": paste.body,
            "mode": paste.mode,
        }
        if paste.fork_of is not None:
            values["fork_of"] = paste.fork_of

        async def work(session: AsyncSession) -> None:
            await session.execute(insert(PasteRecord).values(**values))

        await self._run("create", work)
        paste.created_at = created_at
        logger.info("Paste %s saved (%d chars, mode=%s)", paste.id, paste.size, paste.mode)
        return paste

    async def delete_by_id(self, paste_id: str) -> None:
        """Remove a paste; deleting an unknown identifier is a no-op."""

        async def work(session: AsyncSession) -> int:
            result = await session.execute(
                delete(PasteRecord).where(PasteRecord.uuid == paste_id.upper())
            )
            return result.rowcount

        deleted = await self._run("delete", work)
        if deleted:
            logger.info("Paste %s deleted", paste_id)
        else:
            logger.debug("Delete of unknown paste %s ignored", paste_id)

    # ── Reads ─────────────────────────────────────────────────────────────

    async def load_by_id(self, paste_id: str) -> Paste:
        """
        Fetch one paste.

        Raises:
            NotFoundError: no row has this identifier
            CorruptRowError: the row exists but cannot be parsed
            StorageError: the query failed
        """

        async def work(session: AsyncSession) -> List[Any]:
            result = await session.execute(
                select(*_PASTE_COLUMNS).where(PasteRecord.uuid == paste_id.upper())
            )
            return list(result.mappings().all())

        rows = await self._run("load", work)
        if not rows:
            raise NotFoundError(resource="paste", resource_id=paste_id)

        try:
            return Paste.from_row(rows[0])
        except CorruptRowError as e:
            logger.error("Paste %s is corrupt: %s", paste_id, e.message)
            raise

    async def list(self, offset: int = 0, limit: int = PAGE_SIZE) -> List[Paste]:
        """
        A page of pastes, newest first.

        Rows that cannot be parsed are logged and left out; the rest of the
        page is still returned. An offset past the end gives an empty list.
        """
        offset = max(offset, 0)

        async def work(session: AsyncSession) -> List[Any]:
            result = await session.execute(
                select(*_PASTE_COLUMNS)
                .order_by(desc(PasteRecord.date), desc(PasteRecord.uuid))
                .offset(offset)
                .limit(limit)
            )
            return list(result.mappings().all())

        pastes: List[Paste] = []
        for row in await self._run("list", work):
            try:
                pastes.append(Paste.from_row(row))
            except CorruptRowError as e:
                logger.warning("Skipping corrupt paste row %r: %s", row.get("uuid"), e.message)
        return pastes

    async def count(self) -> int:
        async def work(session: AsyncSession) -> int:
            result = await session.execute(select(func.count(PasteRecord.uuid)))
            return result.scalar() or 0

        return await self._run("count", work)

    # ── Schema ────────────────────────────────────────────────────────────

    async def has_table(self) -> bool:
        async def check() -> bool:
            async with self.engine.connect() as conn:
                return await conn.run_sync(
                    lambda sync_conn: inspect(sync_conn).has_table(PasteRecord.__tablename__)
                )

        try:
            return await self._bounded("has_table", check())
        except SQLAlchemyError as e:
            logger.error("Could not inspect table %s: %s", PasteRecord.__tablename__, str(e))
            raise StorageError(context={"operation": "has_table", "error_type": type(e).__name__})

    async def create_schema(self) -> None:
        """
        Create the pastes table in its current version.

        Raises:
            StorageError: creation failed, including when the table already
                          exists
        """
        async def create() -> None:
            async with self.engine.begin() as conn:
                await conn.run_sync(lambda sync_conn: PasteRecord.__table__.create(sync_conn))

        try:
            await self._bounded("install", create())
        except SQLAlchemyError as e:
            logger.error("Could not create table %s: %s", PasteRecord.__tablename__, str(e))
            raise StorageError(
                message=f"Could not create table '{PasteRecord.__tablename__}'",
                context={"operation": "install", "error_type": type(e).__name__},
            )
        logger.info("Created table %s", PasteRecord.__tablename__)
