"""Canonical market-data types shared across the system.

Frozen dataclasses for value objects. All monetary values use Decimal
(never float); indicator outputs are floats because they are derived
statistics, not prices that get stored or compared for equality.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from marketpulse.market.errors import InvalidArgument


class AssetClass(str, Enum):
    """Asset class of an instrument; selects the provider adapter."""

    CRYPTO = "crypto"
    EQUITY = "equity"

    @classmethod
    def parse(cls, value: AssetClass | str) -> AssetClass:
        """Parse a user-supplied asset class.

        Accepts "stock" as an alias of equity. Anything else is an
        InvalidArgument.
        """
        if isinstance(value, AssetClass):
            return value
        if not isinstance(value, str):
            raise InvalidArgument(f"Unknown asset class: {value!r}")
        normalized = value.strip().lower()
        if normalized == "stock":
            return cls.EQUITY
        try:
            return cls(normalized)
        except ValueError:
            raise InvalidArgument(f"Unknown asset class: {value!r}") from None


# --- Value Objects (frozen) ---


@dataclass(frozen=True)
class Candle:
    """OHLCV observation for one time bucket."""

    timestamp: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal = Decimal("0")


@dataclass(frozen=True)
class CandleSeries:
    """Ordered candles for one (symbol, source, resolution).

    Timestamps are strictly increasing; gaps are allowed. Construct via
    marketpulse.market.normalize.build_series when the input comes from
    an upstream provider.
    """

    symbol: str
    source: AssetClass
    resolution: str
    candles: tuple[Candle, ...] = ()

    def __post_init__(self) -> None:
        for prev, cur in zip(self.candles, self.candles[1:]):
            if cur.timestamp <= prev.timestamp:
                raise ValueError(
                    f"Candle timestamps must be strictly increasing: "
                    f"{prev.timestamp.isoformat()} then {cur.timestamp.isoformat()}"
                )

    def __len__(self) -> int:
        return len(self.candles)

    def __iter__(self) -> Iterator[Candle]:
        return iter(self.candles)

    @property
    def closes(self) -> tuple[Decimal, ...]:
        return tuple(c.close for c in self.candles)

    @property
    def highs(self) -> tuple[Decimal, ...]:
        return tuple(c.high for c in self.candles)

    @property
    def lows(self) -> tuple[Decimal, ...]:
        return tuple(c.low for c in self.candles)

    @property
    def volumes(self) -> tuple[Decimal, ...]:
        return tuple(c.volume for c in self.candles)

    @property
    def last(self) -> Candle | None:
        return self.candles[-1] if self.candles else None


@dataclass(frozen=True)
class Quote:
    """Latest observed price for (symbol, source)."""

    symbol: str
    source: AssetClass
    price: Decimal
    change_24h: Decimal | None
    change_30d: Decimal | None
    observed_at: datetime

    @property
    def key(self) -> tuple[str, AssetClass]:
        return (self.symbol, self.source)


@dataclass(frozen=True)
class NewsItem:
    """One news headline for a symbol."""

    title: str
    url: str
    source: str
    published_at: datetime
    summary: str | None = None


@dataclass(frozen=True)
class FearGreedIndex:
    """Crypto market-wide fear/greed sentiment, 0 (fear) to 100 (greed)."""

    value: int
    classification: str
    timestamp: datetime


@dataclass(frozen=True)
class AnalystRatings:
    """Aggregated analyst recommendation counts for an equity."""

    buy: int
    hold: int
    sell: int
    period: str

    @property
    def total(self) -> int:
        return self.buy + self.hold + self.sell


SentimentPayload = FearGreedIndex | AnalystRatings


@dataclass(frozen=True)
class MACDValue:
    """MACD line, its signal line and their difference."""

    value: float
    signal: float
    histogram: float


@dataclass(frozen=True)
class BollingerBands:
    """Volatility band around a simple moving average."""

    upper: float
    middle: float
    lower: float


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Technical indicators computed from one CandleSeries.

    Derived and ephemeral: never persisted, never mutated.
    moving_averages maps window length to the trailing average.
    """

    symbol: str
    source: AssetClass
    as_of: datetime
    moving_averages: dict[int, float]
    rsi: float
    macd: MACDValue
    bollinger: BollingerBands
    volume_average: float
    support: float
    resistance: float
    candle_count: int


@dataclass(frozen=True)
class EarningsEvent:
    """Next scheduled earnings announcement for an equity."""

    symbol: str
    date: date


@dataclass(frozen=True)
class AggregatedAssetView:
    """Composite response of one aggregation request.

    Each field is independently empty: a failure in one branch never
    empties the others.
    """

    symbol: str
    source: AssetClass
    chart: CandleSeries | None = None
    quote: Quote | None = None
    news: tuple[NewsItem, ...] = field(default_factory=tuple)
    sentiment: SentimentPayload | None = None
    indicators: IndicatorSnapshot | None = None
