"""Tests for PriceCacheStore on an in-memory aiosqlite database."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketpulse.cache.store import PriceCacheStore
from marketpulse.market.errors import InvalidArgument
from marketpulse.market.types import AssetClass

T0 = datetime(2026, 2, 10, 12, 0, tzinfo=UTC)


class TestUpsertAndGet:
    async def test_get_returns_latest_arguments(self, store: PriceCacheStore) -> None:
        written = await store.upsert("BTC", "crypto", Decimal("67890.50"), Decimal("1.25"), Decimal("-3.1"))
        cached = await store.get("BTC", AssetClass.CRYPTO)

        assert cached is not None
        assert cached.price == Decimal("67890.50")
        assert cached.change_24h == Decimal("1.25")
        assert cached.change_30d == Decimal("-3.1")
        assert cached.observed_at == written.observed_at

    async def test_last_write_wins(self, store: PriceCacheStore) -> None:
        await store.upsert("ETH", "crypto", Decimal("3000"), Decimal("1"))
        await store.upsert("ETH", "crypto", Decimal("3100"), None)
        cached = await store.get("ETH", "crypto")

        assert cached is not None
        assert cached.price == Decimal("3100")
        assert cached.change_24h is None

    async def test_idempotent_upsert(self, store: PriceCacheStore) -> None:
        await store.upsert("AAPL", "equity", Decimal("187.50"), Decimal("0.8"))
        first = await store.get("AAPL", "equity")
        await store.upsert("AAPL", "equity", Decimal("187.50"), Decimal("0.8"))
        second = await store.get("AAPL", "equity")

        assert first is not None and second is not None
        assert (first.price, first.change_24h) == (second.price, second.change_24h)
        assert second.observed_at >= first.observed_at

    async def test_float_price_is_exact(self, store: PriceCacheStore) -> None:
        quote = await store.upsert("ETH", "crypto", 3456.78, 2.11)
        assert quote.price == Decimal("3456.78")
        cached = await store.get("ETH", "crypto")
        assert cached is not None
        assert cached.change_24h == Decimal("2.11")

    async def test_symbol_normalized(self, store: PriceCacheStore) -> None:
        await store.upsert(" btc ", "crypto", 1)
        assert await store.get("BTC", "crypto") is not None
        assert await store.get("btc", "crypto") is not None

    async def test_stock_alias_maps_to_equity(self, store: PriceCacheStore) -> None:
        quote = await store.upsert("AAPL", "stock", 187)
        assert quote.source is AssetClass.EQUITY


class TestExactKey:
    async def test_missing_key(self, store: PriceCacheStore) -> None:
        assert await store.get("BTC", "crypto") is None

    async def test_source_is_part_of_key(self, store: PriceCacheStore) -> None:
        await store.upsert("COIN", "equity", Decimal("250"))
        await store.upsert("COIN", "crypto", Decimal("0.01"))

        equity = await store.get("COIN", "equity")
        crypto = await store.get("COIN", "crypto")
        assert equity is not None and equity.price == Decimal("250")
        assert crypto is not None and crypto.price == Decimal("0.01")


class TestValidation:
    @pytest.mark.parametrize(
        ("symbol", "source", "price"),
        [
            ("", "crypto", Decimal("1")),
            ("BTC", "forex", Decimal("1")),
            ("BTC", "crypto", None),
            ("BTC", "crypto", "abc"),
            ("BTC", "crypto", float("nan")),
            ("BTC", "crypto", Decimal("Infinity")),
        ],
    )
    async def test_malformed_input_rejected(
        self, store: PriceCacheStore, symbol: str, source: str, price: object
    ) -> None:
        with pytest.raises(InvalidArgument):
            await store.upsert(symbol, source, price)  # type: ignore[arg-type]
        assert await store.list_all() == []

    async def test_malformed_change_rejected(self, store: PriceCacheStore) -> None:
        with pytest.raises(InvalidArgument):
            await store.upsert("BTC", "crypto", 1, "n/a")


class TestListAndDelete:
    async def test_list_all_ordered(self, store: PriceCacheStore) -> None:
        await store.upsert("ETH", "crypto", 3000)
        await store.upsert("AAPL", "equity", 187)
        await store.upsert("BTC", "crypto", 67000)
        await store.upsert("AAPL", "crypto", 0.5)

        keys = [q.key for q in await store.list_all()]
        assert keys == [
            ("AAPL", AssetClass.CRYPTO),
            ("AAPL", AssetClass.EQUITY),
            ("BTC", AssetClass.CRYPTO),
            ("ETH", AssetClass.CRYPTO),
        ]

    async def test_delete(self, store: PriceCacheStore) -> None:
        await store.upsert("BTC", "crypto", 67000)
        assert await store.delete("btc", "crypto") is True
        assert await store.get("BTC", "crypto") is None
        assert await store.delete("BTC", "crypto") is False


class TestObservedAtMonotonic:
    """observed_at never moves backwards for a key."""

    async def test_clock_going_backwards(self, store: PriceCacheStore) -> None:
        times = iter([T0, T0 - timedelta(seconds=30)])
        with patch("marketpulse.cache.store.utc_now", side_effect=lambda: next(times)):
            first = await store.upsert("BTC", "crypto", 1)
            second = await store.upsert("BTC", "crypto", 2)

        assert first.observed_at == T0
        assert second.observed_at == T0
        cached = await store.get("BTC", "crypto")
        assert cached is not None
        assert cached.observed_at == T0
        assert cached.price == Decimal("2")

    async def test_older_stamp_from_other_writer_kept_newer(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        ahead = PriceCacheStore(session_factory)
        behind = PriceCacheStore(session_factory)

        with patch("marketpulse.cache.store.utc_now", return_value=T0):
            await ahead.upsert("BTC", "crypto", 1)
        with patch("marketpulse.cache.store.utc_now", return_value=T0 - timedelta(minutes=5)):
            await behind.upsert("BTC", "crypto", 2)

        cached = await ahead.get("BTC", "crypto")
        assert cached is not None
        assert cached.price == Decimal("2")
        assert cached.observed_at == T0
