"""
Wastebin: Test Configuration (conftest.py)
============================================

Every test gets its own SQLite file under tmp_path, so tests never share
state and need no cleanup.

Fixtures:
    settings        Settings pointing at tmp_path/wastebin.sqlite
    engine          AsyncEngine for that file (disposed after the test)
    store           PasteStore on an installed (v1) table
    legacy_store    PasteStore on a v0 table (no fork_of column)
    migrator        SchemaMigrator on the same engine
    fixed_clock     Settable clock for PasteStore timestamps
    test_client     httpx AsyncClient talking to a fresh app; table installed
"""

import os
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text

from wastebin.config import Settings
from wastebin.database import create_engine
from wastebin.services.migrations import SchemaMigrator
from wastebin.services.paste_store import PasteStore

ADMIN_PASSWORD = "correct horse battery staple"

# Keep a developer's own config out of the tests
os.environ.pop("WASTEBIN_CONFIG", None)

V0_TABLE_DDL = (
    "CREATE TABLE pastes ("
    "uuid VARCHAR(36) NOT NULL PRIMARY KEY, "
    "date VARCHAR(24), "
    "raw TEXT, "
    "mode VARCHAR(31))"
)


class FakeClock:
    """Returns `now`, then advances it by `step` on every call."""

    def __init__(self, start: datetime, step: timedelta = timedelta(seconds=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_path=str(tmp_path / "wastebin.sqlite"),
        admin_password=ADMIN_PASSWORD,
        max_size=8192,
        store_timeout=5.0,
        log_level="WARNING",
    )


@pytest.fixture
def fixed_clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest_asyncio.fixture
async def engine(settings):
    engine = create_engine(settings)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def store(engine, fixed_clock) -> PasteStore:
    store = PasteStore(engine, timeout=5.0, clock=fixed_clock)
    await store.create_schema()
    return store


@pytest_asyncio.fixture
async def legacy_store(engine, fixed_clock) -> PasteStore:
    """A store over a table created with the original v0 layout."""
    async with engine.begin() as conn:
        await conn.execute(text(V0_TABLE_DDL))
        await conn.execute(text("CREATE INDEX ix_pastes_date ON pastes (date)"))
    return PasteStore(engine, timeout=5.0, clock=fixed_clock)


@pytest.fixture
def migrator(engine) -> SchemaMigrator:
    return SchemaMigrator(engine, timeout=5.0)


@pytest_asyncio.fixture
async def app(settings):
    from wastebin.main import create_app

    app = create_app(settings)
    await app.state.store.create_schema()
    yield app
    await app.state.engine.dispose()


@pytest_asyncio.fixture
async def test_client(app) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTPX client routed straight into the app.

    Redirects are not followed so tests can assert on 303 + Location.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
