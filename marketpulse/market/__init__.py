"""Market data layer: canonical types, provider protocol, adapters.

Re-exports all public types, protocols, and errors for convenient imports:
    from marketpulse.market import Candle, MarketDataProvider, ProviderUnavailable
"""

from marketpulse.market.errors import (
    InsufficientHistory,
    InvalidArgument,
    MarketDataError,
    NotFound,
    ProviderUnavailable,
)
from marketpulse.market.provider import MarketDataProvider
from marketpulse.market.types import (
    AggregatedAssetView,
    AnalystRatings,
    AssetClass,
    BollingerBands,
    Candle,
    CandleSeries,
    EarningsEvent,
    FearGreedIndex,
    IndicatorSnapshot,
    MACDValue,
    NewsItem,
    Quote,
    SentimentPayload,
)

__all__ = [
    "AggregatedAssetView",
    "AnalystRatings",
    "AssetClass",
    "BollingerBands",
    "Candle",
    "CandleSeries",
    "EarningsEvent",
    "FearGreedIndex",
    "IndicatorSnapshot",
    "InsufficientHistory",
    "InvalidArgument",
    "MACDValue",
    "MarketDataError",
    "MarketDataProvider",
    "NewsItem",
    "NotFound",
    "ProviderUnavailable",
    "Quote",
    "SentimentPayload",
]
