"""
Shared test fixtures.

Uses a file-backed SQLite database (via aiosqlite) per test so tests run
without Docker / PostgreSQL / Redis.  A file rather than ``:memory:`` gives
every session its own connection, which the concurrent-commit tests need
to exercise real row-level races.  The ORM models carry no PostGIS columns
(those live only in the migration), so production models are used as-is.
"""

from typing import AsyncGenerator

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine

from ambulance_dispatch.infrastructure import models  # noqa: F401  (registers tables)
from ambulance_dispatch.infrastructure.database import (
    Base,
    SessionFactory,
    make_engine,
    make_session_factory,
)


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create tables in a fresh database file, dispose afterwards."""
    test_engine = make_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'dispatch.db'}",
        connect_args={"timeout": 30},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> SessionFactory:
    return make_session_factory(engine)
