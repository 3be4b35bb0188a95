"""Engine layer: indicator calculation and request aggregation."""

from marketpulse.engine.aggregator import AggregationCoordinator, BranchOutcome
from marketpulse.engine.indicators import (
    SMA,
    IndicatorEngine,
    bollinger_bands,
    ema_series,
    macd,
    trailing_sma,
    wilder_rsi,
)

__all__ = [
    "SMA",
    "AggregationCoordinator",
    "BranchOutcome",
    "IndicatorEngine",
    "bollinger_bands",
    "ema_series",
    "macd",
    "trailing_sma",
    "wilder_rsi",
]
