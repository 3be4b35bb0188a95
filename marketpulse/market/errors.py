"""Market data error hierarchy.

All market-data exceptions inherit from MarketDataError, enabling
clean exception handling at the adapter / coordinator boundary.
Provider outages (ProviderUnavailable, NotFound) are absorbed by the
aggregation coordinator; InvalidArgument is the only error it lets out.
"""

from __future__ import annotations


class MarketDataError(Exception):
    """Base exception for all market-data errors."""


class ProviderUnavailable(MarketDataError):
    """Upstream transport error, timeout, non-2xx status or malformed payload."""

    def __init__(self, provider: str, detail: str) -> None:
        self.provider = provider
        self.detail = detail
        super().__init__(f"{provider} unavailable: {detail}")


class NotFound(MarketDataError):
    """Upstream reports no data for the symbol."""

    def __init__(self, provider: str, symbol: str) -> None:
        self.provider = provider
        self.symbol = symbol
        super().__init__(f"{provider} has no data for {symbol}")


class InsufficientHistory(MarketDataError):
    """Candle series is shorter than the indicator minimum window."""

    def __init__(self, required: int, actual: int) -> None:
        self.required = required
        self.actual = actual
        super().__init__(
            f"Insufficient history: need {required} candles, got {actual}"
        )


class InvalidArgument(MarketDataError, ValueError):
    """Malformed symbol, unknown asset class or out-of-range argument."""
