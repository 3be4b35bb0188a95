"""FinnhubProvider: equity quotes, candles, news and analyst ratings.

Finnhub authenticates with a ``token`` query parameter on every call.
Unlike CoinGecko it reports "no data" in-band (an all-zero quote, a
``{"s": "no_data"}`` candle payload, an empty recommendation list), so
those are mapped to NotFound here rather than by HTTP status.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Self

import httpx
import structlog

from marketpulse.config import ProviderConfig
from marketpulse.market.errors import InvalidArgument, NotFound, ProviderUnavailable
from marketpulse.market.finnhub.mappers import (
    STATUS_NO_DATA,
    STATUS_OK,
    finnhub_candles,
    finnhub_earnings_date,
    finnhub_news,
    finnhub_quote,
    finnhub_quote_has_data,
    finnhub_recommendation,
)
from marketpulse.market.http import ProviderHttpClient
from marketpulse.market.normalize import build_series
from marketpulse.market.types import (
    AnalystRatings,
    AssetClass,
    CandleSeries,
    EarningsEvent,
    NewsItem,
    Quote,
)
from marketpulse.market.utils import (
    MALFORMED_PAYLOAD_ERRORS,
    normalize_symbol,
    validate_lookback,
)
from marketpulse.utils.time import to_unix_seconds, utc_now

log = structlog.get_logger()

_MALFORMED = MALFORMED_PAYLOAD_ERRORS

# Candle resolutions accepted by /stock/candle
VALID_RESOLUTIONS = frozenset({"1", "5", "15", "30", "60", "D", "W", "M"})

NEWS_WINDOW_DAYS = 7


class FinnhubProvider:
    """MarketDataProvider for the equity asset class."""

    name = "finnhub"
    asset_class = AssetClass.EQUITY

    def __init__(
        self,
        config: ProviderConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = config.api_key
        self._http = ProviderHttpClient(self.name, config, transport=transport)

    async def _get(self, path: str, symbol: str, **params: Any) -> Any:
        """GET an endpoint keyed by ``symbol``, adding the symbol and token params."""
        if not self._api_key:
            raise ProviderUnavailable(
                self.name,
                "API key is required. Set PULSE_FINNHUB__API_KEY.",
            )
        return await self._http.get_json(
            path,
            params={"symbol": symbol, **params, "token": self._api_key},
            symbol=symbol,
        )

    async def fetch_quote(self, symbol: str) -> Quote:
        symbol = normalize_symbol(symbol)
        payload = await self._get("/quote", symbol)
        try:
            if not finnhub_quote_has_data(payload):
                raise NotFound(self.name, symbol)
            return finnhub_quote(symbol, payload, utc_now())
        except _MALFORMED as exc:
            raise ProviderUnavailable(self.name, f"malformed quote payload: {exc}") from exc

    async def fetch_candles(
        self,
        symbol: str,
        resolution: str = "D",
        lookback_days: int = 7,
    ) -> CandleSeries:
        symbol = normalize_symbol(symbol)
        lookback_days = validate_lookback(lookback_days)
        if resolution not in VALID_RESOLUTIONS:
            raise InvalidArgument(f"Unsupported resolution: {resolution}")

        now = utc_now()
        payload = await self._get(
            "/stock/candle",
            symbol,
            resolution=resolution,
            **{
                "from": to_unix_seconds(now - timedelta(days=lookback_days)),
                "to": to_unix_seconds(now),
            },
        )
        try:
            status = payload["s"]
            if status == STATUS_NO_DATA:
                raise NotFound(self.name, symbol)
            if status != STATUS_OK:
                raise ValueError(f"unexpected candle status {status!r}")
            candles = finnhub_candles(payload)
            series = build_series(symbol, self.asset_class, resolution, candles, now=now)
        except _MALFORMED as exc:
            raise ProviderUnavailable(self.name, f"malformed candle payload: {exc}") from exc
        if len(series) == 0:
            raise NotFound(self.name, symbol)
        return series

    async def fetch_news(self, symbol: str) -> list[NewsItem]:
        symbol = normalize_symbol(symbol)
        today = utc_now().date()
        items = await self._get(
            "/company-news",
            symbol,
            **{
                "from": (today - timedelta(days=NEWS_WINDOW_DAYS)).isoformat(),
                "to": today.isoformat(),
            },
        )
        try:
            return finnhub_news(items)
        except _MALFORMED as exc:
            raise ProviderUnavailable(self.name, f"malformed news payload: {exc}") from exc

    async def fetch_sentiment(self, symbol: str) -> AnalystRatings:
        symbol = normalize_symbol(symbol)
        items = await self._get("/stock/recommendation", symbol)
        try:
            ratings = finnhub_recommendation(items)
        except _MALFORMED as exc:
            raise ProviderUnavailable(
                self.name, f"malformed recommendation payload: {exc}"
            ) from exc
        if ratings is None:
            raise NotFound(self.name, symbol)
        return ratings

    async def fetch_earnings(self, symbol: str) -> EarningsEvent | None:
        """Next earnings announcement, or None when none is scheduled."""
        symbol = normalize_symbol(symbol)
        payload = await self._get("/calendar/earnings", symbol)
        try:
            next_date: date | None = finnhub_earnings_date(payload)
        except _MALFORMED as exc:
            raise ProviderUnavailable(
                self.name, f"malformed earnings payload: {exc}"
            ) from exc
        if next_date is None:
            return None
        return EarningsEvent(symbol=symbol, date=next_date)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        """Close on context manager exit without masking the original exception."""
        try:
            await self.aclose()
        except Exception:
            log.exception("Error during aclose in __aexit__")
