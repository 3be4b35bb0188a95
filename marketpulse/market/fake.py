"""FakeMarketDataProvider: in-memory market data for testing.

Lightweight implementation of MarketDataProvider for unit testing the
aggregation coordinator and bulk refresh without any network access.
Canned answers are supplied at construction; ``fail_with`` makes a
branch raise, ``delays`` makes it slow.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Self

from marketpulse.market.errors import NotFound
from marketpulse.market.types import (
    AssetClass,
    CandleSeries,
    NewsItem,
    Quote,
    SentimentPayload,
)
from marketpulse.market.utils import normalize_symbol, validate_lookback

BRANCHES = frozenset({"quote", "candles", "news", "sentiment"})


class FakeMarketDataProvider:
    """In-memory MarketDataProvider for testing."""

    name = "fake"

    def __init__(
        self,
        asset_class: AssetClass = AssetClass.CRYPTO,
        *,
        quotes: dict[str, Quote] | None = None,
        series: dict[str, CandleSeries] | None = None,
        news: dict[str, Sequence[NewsItem]] | None = None,
        sentiment: dict[str, SentimentPayload] | None = None,
        fail_with: dict[str, BaseException] | None = None,
        delays: dict[str, float] | None = None,
    ) -> None:
        unknown = set(fail_with or {}) | set(delays or {})
        if not unknown <= BRANCHES:
            raise ValueError(f"Unknown branches: {sorted(unknown - BRANCHES)}")
        self.asset_class = asset_class
        self._quotes = quotes if quotes is not None else {}
        self._series = series if series is not None else {}
        self._news = news if news is not None else {}
        self._sentiment = sentiment if sentiment is not None else {}
        self._fail_with = fail_with if fail_with is not None else {}
        self._delays = delays if delays is not None else {}
        self.calls: list[tuple[str, str]] = []
        self.cancelled: list[str] = []
        self.closed = False

    async def _enter(self, branch: str, symbol: str) -> str:
        symbol = normalize_symbol(symbol)
        self.calls.append((branch, symbol))
        delay = self._delays.get(branch)
        if delay:
            try:
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                self.cancelled.append(branch)
                raise
        exc = self._fail_with.get(branch)
        if exc is not None:
            raise exc
        return symbol

    async def fetch_quote(self, symbol: str) -> Quote:
        symbol = await self._enter("quote", symbol)
        if symbol not in self._quotes:
            raise NotFound(self.name, symbol)
        return self._quotes[symbol]

    async def fetch_candles(
        self,
        symbol: str,
        resolution: str = "D",
        lookback_days: int = 7,
    ) -> CandleSeries:
        validate_lookback(lookback_days)
        symbol = await self._enter("candles", symbol)
        if symbol not in self._series:
            raise NotFound(self.name, symbol)
        return self._series[symbol]

    async def fetch_news(self, symbol: str) -> list[NewsItem]:
        symbol = await self._enter("news", symbol)
        return list(self._news.get(symbol, ()))

    async def fetch_sentiment(self, symbol: str) -> SentimentPayload:
        symbol = await self._enter("sentiment", symbol)
        if symbol not in self._sentiment:
            raise NotFound(self.name, symbol)
        return self._sentiment[symbol]

    async def aclose(self) -> None:
        self.closed = True

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        await self.aclose()
