"""Aggregation coordinator -- concurrent fan-out with settle-all semantics.

One aggregate() call runs four independent branches (quote, candles,
news, sentiment) against the provider registered for the asset class.
Every branch is bounded by its own timeout and settles to a
BranchOutcome; none of them can fail the request. Only a structurally
invalid request (empty symbol, unknown asset class, bad lookback) raises.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

import structlog

from marketpulse.config import AggregationConfig
from marketpulse.engine.indicators import IndicatorEngine
from marketpulse.market.errors import InsufficientHistory, InvalidArgument
from marketpulse.market.provider import MarketDataProvider
from marketpulse.market.types import (
    AggregatedAssetView,
    AssetClass,
    CandleSeries,
    IndicatorSnapshot,
    NewsItem,
    Quote,
    SentimentPayload,
)
from marketpulse.market.utils import normalize_symbol, validate_lookback
from marketpulse.utils.logging import request_context

if TYPE_CHECKING:
    from marketpulse.cache.store import PriceCacheStore

log = structlog.get_logger()

T = TypeVar("T")

# Candle resolution requested per asset class
DEFAULT_RESOLUTION: dict[AssetClass, str] = {
    AssetClass.CRYPTO: "auto",
    AssetClass.EQUITY: "D",
}


@dataclass(frozen=True)
class BranchOutcome(Generic[T]):
    """Terminal state of one fan-out branch: a value or the error."""

    branch: str
    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class AggregationCoordinator:
    """Builds an AggregatedAssetView from independent provider calls.

    Providers are looked up by asset class. If a store is given (and
    ``config.persist_quotes`` is on), a successfully fetched quote is
    upserted into it; a store failure is logged, never raised.
    """

    def __init__(
        self,
        providers: Mapping[AssetClass, MarketDataProvider],
        *,
        engine: IndicatorEngine | None = None,
        store: PriceCacheStore | None = None,
        config: AggregationConfig | None = None,
    ) -> None:
        self._providers = dict(providers)
        self._engine = engine if engine is not None else IndicatorEngine()
        self._store = store
        self._config = config if config is not None else AggregationConfig()

    async def _settle(self, branch: str, call: Awaitable[T]) -> BranchOutcome[T]:
        """Await one branch under the per-task timeout; never raises.

        Cancellation of the caller is not swallowed: CancelledError is a
        BaseException and propagates, cancelling the in-flight call.
        """
        timeout = self._config.task_timeout_seconds
        try:
            value = await asyncio.wait_for(call, timeout=timeout)
        except TimeoutError as exc:
            log.warning("aggregate_branch_timeout", branch=branch, timeout_s=timeout)
            return BranchOutcome(branch=branch, error=exc)
        except Exception as exc:
            log.warning(
                "aggregate_branch_failed",
                branch=branch,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return BranchOutcome(branch=branch, error=exc)
        return BranchOutcome(branch=branch, value=value)

    def _compute_indicators(self, chart: CandleSeries | None) -> IndicatorSnapshot | None:
        if chart is None:
            return None
        if len(chart) < self._engine.min_history:
            log.info(
                "indicators_skipped",
                candles=len(chart),
                required=self._engine.min_history,
            )
            return None
        try:
            return self._engine.compute(chart)
        except InsufficientHistory:
            return None

    async def _persist_quote(self, quote: Quote) -> None:
        if self._store is None or not self._config.persist_quotes:
            return
        try:
            await self._store.upsert(
                quote.symbol,
                quote.source,
                quote.price,
                quote.change_24h,
                quote.change_30d,
            )
        except Exception:
            log.exception("aggregate_quote_persist_failed", symbol=quote.symbol)

    async def aggregate(
        self,
        symbol: str,
        asset_class: AssetClass | str,
        lookback_days: int | None = None,
    ) -> AggregatedAssetView:
        """Fan out to the provider and assemble the composite view.

        Raises:
            InvalidArgument: Empty symbol, unknown asset class, asset class
                without a provider, or non-positive lookback_days.
        """
        symbol = normalize_symbol(symbol)
        source = AssetClass.parse(asset_class)
        days = validate_lookback(
            lookback_days
            if lookback_days is not None
            else self._config.default_lookback_days
        )
        provider = self._providers.get(source)
        if provider is None:
            raise InvalidArgument(f"No provider registered for {source.value}")

        with request_context(symbol=symbol, source=source.value):
            log.info("aggregate_started", lookback_days=days, provider=provider.name)

            branches: list[tuple[str, Awaitable[Any]]] = [
                ("quote", provider.fetch_quote(symbol)),
                (
                    "candles",
                    provider.fetch_candles(symbol, DEFAULT_RESOLUTION[source], days),
                ),
                ("news", provider.fetch_news(symbol)),
                ("sentiment", provider.fetch_sentiment(symbol)),
            ]
            quote_out, chart_out, news_out, sentiment_out = await asyncio.gather(
                *(self._settle(name, call) for name, call in branches)
            )

            quote: Quote | None = quote_out.value
            chart: CandleSeries | None = chart_out.value
            news: list[NewsItem] = news_out.value if news_out.ok and news_out.value else []
            sentiment: SentimentPayload | None = sentiment_out.value

            indicators = self._compute_indicators(chart)
            if quote is not None:
                await self._persist_quote(quote)

            outcomes = (quote_out, chart_out, news_out, sentiment_out)
            log.info(
                "aggregate_complete",
                failed=[o.branch for o in outcomes if not o.ok],
                candles=len(chart) if chart is not None else 0,
                indicators=indicators is not None,
            )

        return AggregatedAssetView(
            symbol=symbol,
            source=source,
            chart=chart,
            quote=quote,
            news=tuple(news),
            sentiment=sentiment,
            indicators=indicators,
        )
