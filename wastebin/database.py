"""
Wastebin: Database Engine
===========================

What:  Async SQLAlchemy engine factory and the declarative base.
How:   `create_engine(settings)` builds an aiosqlite engine whose pool holds a
       single connection. The app factory owns the returned engine (kept on
       `app.state`) and hands it to the store and the migrator; there is no
       module-level engine, so tests can run isolated databases side by side.

Connection model:
    pool_size=1, max_overflow=0: one logical connection. Store calls from
    concurrent requests queue for it; pool_timeout bounds that wait with the
    same `store_timeout` that bounds the operation itself.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import AsyncAdaptedQueuePool

from wastebin.config import Settings


class Base(DeclarativeBase):
    """
    Base class for the ORM models.

    Its metadata describes the current schema; `GET /install` creates it and
    Alembic's env.py uses it as target_metadata.
    """
    pass


def create_engine(settings: Settings) -> AsyncEngine:
    """
    Create the engine for the configured SQLite file.

    Args:
        settings: Application settings (database_path, store_timeout, log_level)

    Returns:
        An AsyncEngine limited to one pooled connection
    """
    return create_async_engine(
        settings.database_url,
        poolclass=AsyncAdaptedQueuePool,
        pool_size=1,
        max_overflow=0,
        pool_timeout=settings.store_timeout,
        # sqlite3 busy timeout, seconds
        connect_args={"timeout": settings.store_timeout},
        echo=settings.log_level == "DEBUG",
    )


async def dispose_engine(engine: AsyncEngine) -> None:
    """Close all pooled connections; called from the app lifespan on shutdown."""
    await engine.dispose()
