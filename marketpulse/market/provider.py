"""MarketDataProvider protocol: abstract interface for upstream data sources.

All adapters (CoinGecko, Finnhub, fake) must satisfy this protocol. The
aggregation coordinator only ever talks to this interface.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from marketpulse.market.types import (
    AssetClass,
    CandleSeries,
    NewsItem,
    Quote,
    SentimentPayload,
)


@runtime_checkable
class MarketDataProvider(Protocol):
    """Async interface for quotes, candles, news and sentiment.

    Implementations normalize the symbol (strip + uppercase) before any
    lookup and translate every transport or payload problem into
    ProviderUnavailable or NotFound. They hold no per-symbol state
    between calls.
    """

    name: str
    asset_class: AssetClass

    async def fetch_quote(self, symbol: str) -> Quote:
        """Fetch the latest price and change figures for a symbol."""
        ...

    async def fetch_candles(
        self,
        symbol: str,
        resolution: str,
        lookback_days: int,
    ) -> CandleSeries:
        """Fetch OHLC history covering the last ``lookback_days`` days.

        Returns:
            CandleSeries ordered by timestamp ascending, deduplicated,
            with no timestamps in the future.
        """
        ...

    async def fetch_news(self, symbol: str) -> list[NewsItem]:
        """Fetch recent news items for a symbol (possibly empty)."""
        ...

    async def fetch_sentiment(self, symbol: str) -> SentimentPayload:
        """Fetch the sentiment figure that applies to this asset class."""
        ...

    async def aclose(self) -> None:
        """Release pooled connections."""
        ...
