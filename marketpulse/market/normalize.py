"""Candle normalization: raw upstream rows -> CandleSeries.

Upstream providers deliver candles in arbitrary order and occasionally
repeat a bucket when they revise it. This module is the only place that
repairs ordering; everything downstream (IndicatorEngine included) relies
on the CandleSeries invariants and never re-sorts.

Rules:
- Rows are sorted ascending by timestamp.
- Duplicate timestamps keep the LAST occurrence in delivery order (a
  revision replaces the earlier row).
- Rows stamped in the future relative to ``now`` are dropped.
- A row with inconsistent prices makes the whole payload invalid; the
  caller turns that ValueError into ProviderUnavailable.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal

from marketpulse.market.types import AssetClass, Candle, CandleSeries
from marketpulse.utils.time import utc_now

_ZERO = Decimal("0")


def validate_candle(candle: Candle) -> None:
    """Raise ValueError if a candle's prices are inconsistent."""
    if candle.timestamp.tzinfo is None:
        raise ValueError(f"Candle timestamp must be timezone-aware: {candle.timestamp}")
    if min(candle.open, candle.high, candle.low, candle.close) <= _ZERO:
        raise ValueError(f"Candle prices must be positive at {candle.timestamp}")
    if candle.volume < _ZERO:
        raise ValueError(f"Candle volume must be >= 0 at {candle.timestamp}")
    if candle.high < candle.low:
        raise ValueError(
            f"Candle high {candle.high} below low {candle.low} at {candle.timestamp}"
        )
    if not (candle.low <= candle.open <= candle.high):
        raise ValueError(f"Candle open outside high/low range at {candle.timestamp}")
    if not (candle.low <= candle.close <= candle.high):
        raise ValueError(f"Candle close outside high/low range at {candle.timestamp}")


def build_series(
    symbol: str,
    source: AssetClass,
    resolution: str,
    candles: Iterable[Candle],
    *,
    now: datetime | None = None,
) -> CandleSeries:
    """Validate, sort, deduplicate and trim candles into a CandleSeries.

    Raises:
        ValueError: If any candle is malformed. No partial series is
            returned in that case.
    """
    cutoff = now if now is not None else utc_now()
    by_timestamp: dict[datetime, Candle] = {}
    for candle in candles:
        validate_candle(candle)
        if candle.timestamp > cutoff:
            continue
        # last occurrence wins
        by_timestamp[candle.timestamp] = candle

    ordered = tuple(by_timestamp[ts] for ts in sorted(by_timestamp))
    return CandleSeries(
        symbol=symbol,
        source=source,
        resolution=resolution,
        candles=ordered,
    )
