"""Shared test fixtures for marketpulse."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from marketpulse.cache.store import PriceCacheStore
from marketpulse.models.base import create_sqlite_engine, init_schema


@pytest.fixture
async def db_engine() -> AsyncIterator[AsyncEngine]:
    """In-memory aiosqlite engine with the schema created."""
    engine = create_sqlite_engine(":memory:")
    await init_schema(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest.fixture
def store(session_factory: async_sessionmaker[AsyncSession]) -> PriceCacheStore:
    return PriceCacheStore(session_factory)
