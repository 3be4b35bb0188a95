"""Technical indicator calculation over a CandleSeries.

SMA is a standalone ring-buffer class fed one close at a time; it reports
None until its window is full, so candles without a complete trailing
window never contribute a value. The remaining indicators are pure
functions over a list of floats. IndicatorEngine checks the minimum
history, converts Decimal -> float at the boundary and assembles the
IndicatorSnapshot.

Everything here is deterministic: sums use math.fsum over the same
values in the same order, so identical series give bit-identical output.
"""

from __future__ import annotations

import math
from collections import deque
from collections.abc import Sequence

from marketpulse.config import IndicatorConfig
from marketpulse.market.errors import InsufficientHistory
from marketpulse.market.types import (
    BollingerBands,
    CandleSeries,
    IndicatorSnapshot,
    MACDValue,
)

RSI_MAX = 100.0
RSI_MIN = 0.0


class SMA:
    """Simple Moving Average over a ring buffer of the last ``period`` values.

    The value is re-summed with math.fsum on read instead of keeping a
    running sum, so long series do not accumulate drift.
    """

    __slots__ = ("_buf", "_period")

    def __init__(self, period: int) -> None:
        if period < 1:
            raise ValueError(f"SMA period must be >= 1, got {period}")
        self._period = period
        self._buf: deque[float] = deque(maxlen=period)

    def update(self, value: float) -> None:
        """Add a value. Evicts oldest if at capacity."""
        self._buf.append(value)

    @property
    def value(self) -> float | None:
        """Current SMA, or None if not warm."""
        if len(self._buf) < self._period:
            return None
        return math.fsum(self._buf) / self._period

    @property
    def is_warm(self) -> bool:
        return len(self._buf) >= self._period

    @property
    def count(self) -> int:
        return len(self._buf)


def trailing_sma(values: Sequence[float], period: int) -> float | None:
    """SMA of the last ``period`` values, or None if there are fewer."""
    sma = SMA(period)
    for v in values:
        sma.update(v)
    return sma.value


def ema_series(values: Sequence[float], period: int) -> list[float]:
    """Exponential moving average, seeded with the SMA of the first window.

    Returns one value per input from index ``period - 1`` on, i.e.
    ``len(values) - period + 1`` values (empty if too short).
    """
    if period < 1:
        raise ValueError(f"EMA period must be >= 1, got {period}")
    if len(values) < period:
        return []
    multiplier = 2.0 / (period + 1)
    ema = math.fsum(values[:period]) / period
    out = [ema]
    for v in values[period:]:
        ema = (v - ema) * multiplier + ema
        out.append(ema)
    return out


def wilder_rsi(values: Sequence[float], period: int = 14) -> float:
    """Relative Strength Index with Wilder smoothing.

    The first average gain/loss is the simple mean over the first
    ``period`` changes; every later change is folded in with
    ``avg = (avg * (period - 1) + x) / period``. A zero average loss gives
    the maximum bound (100), including a perfectly flat series.

    Raises:
        ValueError: If there are not at least ``period + 1`` values.
    """
    if len(values) < period + 1:
        raise ValueError(f"RSI needs {period + 1} values, got {len(values)}")

    changes = [cur - prev for prev, cur in zip(values, values[1:])]
    avg_gain = math.fsum(max(c, 0.0) for c in changes[:period]) / period
    avg_loss = math.fsum(max(-c, 0.0) for c in changes[:period]) / period

    for c in changes[period:]:
        avg_gain = (avg_gain * (period - 1) + max(c, 0.0)) / period
        avg_loss = (avg_loss * (period - 1) + max(-c, 0.0)) / period

    if avg_loss == 0.0:
        return RSI_MAX
    rs = avg_gain / avg_loss
    rsi = RSI_MAX - RSI_MAX / (1.0 + rs)
    return min(RSI_MAX, max(RSI_MIN, rsi))


def macd(
    values: Sequence[float],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> MACDValue:
    """MACD line (fast EMA - slow EMA), its signal EMA and the histogram.

    The MACD line exists from the first full slow window on; the signal
    line is an EMA over that line.

    Raises:
        ValueError: If there are fewer than ``slow + signal - 1`` values.
    """
    if fast >= slow:
        raise ValueError(f"fast ({fast}) must be < slow ({slow})")
    needed = slow + signal - 1
    if len(values) < needed:
        raise ValueError(f"MACD needs {needed} values, got {len(values)}")

    fast_ema = ema_series(values, fast)
    slow_ema = ema_series(values, slow)
    offset = slow - fast
    line = [fast_ema[i + offset] - s for i, s in enumerate(slow_ema)]
    signal_line = ema_series(line, signal)

    value = line[-1]
    signal_value = signal_line[-1]
    return MACDValue(value=value, signal=signal_value, histogram=value - signal_value)


def bollinger_bands(
    values: Sequence[float],
    period: int = 20,
    num_stddev: float = 2.0,
) -> BollingerBands:
    """SMA midline +/- ``num_stddev`` population standard deviations.

    Zero variance collapses both bands onto the midline.

    Raises:
        ValueError: If there are fewer than ``period`` values.
    """
    middle = trailing_sma(values, period)
    if middle is None:
        raise ValueError(f"Bollinger bands need {period} values, got {len(values)}")
    window = values[-period:]
    variance = math.fsum((v - middle) ** 2 for v in window) / period
    width = math.sqrt(variance) * num_stddev if variance > 0.0 else 0.0
    return BollingerBands(upper=middle + width, middle=middle, lower=middle - width)


class IndicatorEngine:
    """Computes an IndicatorSnapshot from a CandleSeries.

    Fails fast with InsufficientHistory below ``config.min_history``
    candles rather than returning numbers from partial windows.
    """

    def __init__(self, config: IndicatorConfig | None = None) -> None:
        self._config = config if config is not None else IndicatorConfig()

    @property
    def min_history(self) -> int:
        return self._config.min_history

    def compute(self, series: CandleSeries) -> IndicatorSnapshot:
        cfg = self._config
        if len(series) < cfg.min_history:
            raise InsufficientHistory(required=cfg.min_history, actual=len(series))

        # Decimal -> float at boundary
        closes = [float(c) for c in series.closes]
        volumes = [float(v) for v in series.volumes]
        recent = series.candles[-cfg.support_window :]

        moving_averages: dict[int, float] = {}
        for period in cfg.ma_periods:
            value = trailing_sma(closes, period)
            if value is not None:
                moving_averages[period] = value

        last = series.last
        assert last is not None
        return IndicatorSnapshot(
            symbol=series.symbol,
            source=series.source,
            as_of=last.timestamp,
            moving_averages=moving_averages,
            rsi=wilder_rsi(closes, cfg.rsi_period),
            macd=macd(closes, cfg.macd_fast, cfg.macd_slow, cfg.macd_signal),
            bollinger=bollinger_bands(
                closes, cfg.bollinger_period, cfg.bollinger_stddev
            ),
            volume_average=math.fsum(volumes) / len(volumes),
            support=float(min(c.low for c in recent)),
            resistance=float(max(c.high for c in recent)),
            candle_count=len(series),
        )
