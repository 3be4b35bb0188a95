"""CoinGeckoProvider: crypto quotes, candles and news via CoinGecko REST.

Sentiment comes from the Alternative.me fear & greed index, which is a
separate upstream with its own ProviderConfig. Ticker symbols are
resolved to CoinGecko coin ids through a static map first, then the
``/search`` endpoint (exact ticker match only).
"""

from __future__ import annotations

from typing import Any, Self

import httpx
import structlog

from marketpulse.config import ProviderConfig
from marketpulse.market.coingecko.mappers import (
    COIN_IDS,
    coin_id_from_search,
    coingecko_ohlc_to_candles,
    coingecko_quote,
    coingecko_status_updates_to_news,
    fear_greed_to_index,
)
from marketpulse.market.errors import NotFound, ProviderUnavailable
from marketpulse.market.http import ProviderHttpClient
from marketpulse.market.normalize import build_series
from marketpulse.market.types import (
    AssetClass,
    CandleSeries,
    FearGreedIndex,
    NewsItem,
    Quote,
)
from marketpulse.market.utils import (
    MALFORMED_PAYLOAD_ERRORS,
    normalize_symbol,
    validate_lookback,
)
from marketpulse.utils.time import utc_now

log = structlog.get_logger()

_MALFORMED = MALFORMED_PAYLOAD_ERRORS


class CoinGeckoProvider:
    """MarketDataProvider for the crypto asset class."""

    name = "coingecko"
    asset_class = AssetClass.CRYPTO

    def __init__(
        self,
        config: ProviderConfig,
        fear_greed_config: ProviderConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"x-cg-demo-api-key": config.api_key} if config.api_key else None
        self._http = ProviderHttpClient(
            self.name,
            config,
            headers=headers,
            transport=transport,
        )
        self._fng_http = ProviderHttpClient(
            "alternative.me",
            fear_greed_config,
            transport=transport,
        )

    async def _resolve_coin_id(self, symbol: str) -> str:
        coin_id = COIN_IDS.get(symbol)
        if coin_id is not None:
            return coin_id

        payload = await self._http.get_json(
            "/search",
            params={"query": symbol},
            symbol=symbol,
        )
        try:
            coin_id = coin_id_from_search(symbol, payload)
        except _MALFORMED as exc:
            raise ProviderUnavailable(self.name, f"malformed search payload: {exc}") from exc
        if coin_id is None:
            raise NotFound(self.name, symbol)
        log.debug("coin_id_resolved", symbol=symbol, coin_id=coin_id)
        return coin_id

    async def fetch_quote(self, symbol: str) -> Quote:
        symbol = normalize_symbol(symbol)
        coin_id = await self._resolve_coin_id(symbol)
        payload = await self._http.get_json(
            f"/coins/{coin_id}",
            params={
                "localization": "false",
                "tickers": "false",
                "market_data": "true",
                "community_data": "false",
                "developer_data": "false",
                "sparkline": "false",
            },
            symbol=symbol,
        )
        try:
            return coingecko_quote(symbol, payload, utc_now())
        except _MALFORMED as exc:
            raise ProviderUnavailable(self.name, f"malformed quote payload: {exc}") from exc

    async def fetch_candles(
        self,
        symbol: str,
        resolution: str = "auto",
        lookback_days: int = 7,
    ) -> CandleSeries:
        """Fetch OHLC candles.

        CoinGecko picks the bucket size from ``days`` on its own, so
        ``resolution`` is only recorded on the series.
        """
        symbol = normalize_symbol(symbol)
        lookback_days = validate_lookback(lookback_days)
        coin_id = await self._resolve_coin_id(symbol)
        rows = await self._http.get_json(
            f"/coins/{coin_id}/ohlc",
            params={"vs_currency": "usd", "days": lookback_days},
            symbol=symbol,
        )
        try:
            candles = coingecko_ohlc_to_candles(rows)
            series = build_series(symbol, self.asset_class, resolution, candles)
        except _MALFORMED as exc:
            raise ProviderUnavailable(self.name, f"malformed OHLC payload: {exc}") from exc
        if len(series) == 0:
            raise NotFound(self.name, symbol)
        return series

    async def fetch_news(self, symbol: str) -> list[NewsItem]:
        symbol = normalize_symbol(symbol)
        coin_id = await self._resolve_coin_id(symbol)
        payload = await self._http.get_json(
            f"/coins/{coin_id}/status_updates",
            params={"per_page": 20},
            symbol=symbol,
        )
        try:
            return coingecko_status_updates_to_news(payload)
        except _MALFORMED as exc:
            raise ProviderUnavailable(self.name, f"malformed news payload: {exc}") from exc

    async def fetch_sentiment(self, symbol: str) -> FearGreedIndex:
        """Fetch the market-wide fear & greed index.

        The index is not per-coin; ``symbol`` is validated for interface
        symmetry only.
        """
        normalize_symbol(symbol)
        payload: dict[str, Any] = await self._fng_http.get_json(
            "/fng/",
            params={"limit": 1},
        )
        try:
            return fear_greed_to_index(payload)
        except _MALFORMED as exc:
            raise ProviderUnavailable(
                "alternative.me", f"malformed fear/greed payload: {exc}"
            ) from exc

    async def aclose(self) -> None:
        await self._http.aclose()
        await self._fng_http.aclose()

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
