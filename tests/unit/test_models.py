"""Tests for SQLAlchemy models and engine setup."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import inspect, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from marketpulse.models import PriceCacheModel, create_sqlite_engine, init_schema


class TestPriceCacheModel:
    async def test_decimal_roundtrip(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        async with session_factory() as session, session.begin():
            session.add(
                PriceCacheModel(
                    symbol="BTC",
                    source="crypto",
                    price=Decimal("67890.123456789"),
                    change_24h=None,
                    change_30d=Decimal("-0.01"),
                    observed_at="2026-02-10T00:00:00.000000Z",
                )
            )
        async with session_factory() as session:
            row = await session.get(PriceCacheModel, ("BTC", "crypto"))
        assert row is not None
        assert row.price == Decimal("67890.123456789")
        assert row.change_24h is None
        assert row.change_30d == Decimal("-0.01")

    async def test_source_check_constraint(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        with pytest.raises(IntegrityError):
            async with session_factory() as session, session.begin():
                session.add(
                    PriceCacheModel(
                        symbol="EUR",
                        source="forex",
                        price=Decimal("1"),
                        observed_at="2026-02-10T00:00:00.000000Z",
                    )
                )

    async def test_composite_primary_key(self, db_engine: AsyncEngine) -> None:
        async with db_engine.connect() as conn:
            pk = await conn.run_sync(
                lambda c: inspect(c).get_pk_constraint("price_cache")
            )
        assert pk["constrained_columns"] == ["symbol", "source"]


class TestEngineSetup:
    async def test_file_engine_pragmas(self, tmp_path: Path) -> None:
        engine = create_sqlite_engine(str(tmp_path / "nested" / "cache.db"), 1234)
        try:
            await init_schema(engine)
            async with engine.connect() as conn:
                mode = (await conn.execute(text("PRAGMA journal_mode"))).scalar()
                timeout = (await conn.execute(text("PRAGMA busy_timeout"))).scalar()
            assert mode == "wal"
            assert timeout == 1234
            assert (tmp_path / "nested" / "cache.db").exists()
        finally:
            await engine.dispose()
