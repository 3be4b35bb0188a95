"""Tests for FinnhubProvider and its mappers, against httpx.MockTransport."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any

import httpx
import pytest

from marketpulse.config import ProviderConfig
from marketpulse.market.coingecko.mappers import coingecko_ohlc_to_candles
from marketpulse.market.errors import InvalidArgument, NotFound, ProviderUnavailable
from marketpulse.market.finnhub import FinnhubProvider
from marketpulse.market.finnhub.mappers import finnhub_candles, finnhub_recommendation
from marketpulse.market.normalize import build_series
from marketpulse.market.provider import MarketDataProvider
from marketpulse.market.types import AnalystRatings, AssetClass

# 2025-01-01T00:00:00Z in seconds
DAY0 = 1735689600
DAY = 86_400

Handler = Callable[[httpx.Request], httpx.Response]


def _provider(handler: Handler, api_key: str = "test-token") -> FinnhubProvider:
    return FinnhubProvider(
        ProviderConfig(base_url="https://finnhub.io/api/v1", api_key=api_key),
        transport=httpx.MockTransport(handler),
    )


def _json(payload: Any, status: int = 200) -> httpx.Response:
    return httpx.Response(status, json=payload)


class TestProtocol:
    def test_satisfies_market_data_provider(self) -> None:
        provider = _provider(lambda r: _json({}))
        assert isinstance(provider, MarketDataProvider)
        assert provider.asset_class is AssetClass.EQUITY


class TestAuth:
    async def test_token_param_sent(self) -> None:
        tokens: list[str | None] = []

        def handler(request: httpx.Request) -> httpx.Response:
            tokens.append(request.url.params.get("token"))
            return _json({"c": 187.5, "dp": 0.8, "t": DAY0})

        async with _provider(handler) as provider:
            await provider.fetch_quote("AAPL")
        assert tokens == ["test-token"]

    async def test_missing_key_is_unavailable_without_request(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return _json({})

        async with _provider(handler, api_key="") as provider:
            with pytest.raises(ProviderUnavailable, match="API key"):
                await provider.fetch_quote("AAPL")
        assert calls == []


class TestFetchQuote:
    async def test_symbol_sent_once_as_query_param(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json({"c": 187.5, "dp": 0.8, "t": DAY0})

        async with _provider(handler) as provider:
            await provider.fetch_quote(" aapl ")
        assert seen[0].url.path == "/api/v1/quote"
        assert seen[0].url.params.get_list("symbol") == ["AAPL"]

    async def test_quote_mapped(self) -> None:
        async with _provider(lambda r: _json({"c": 187.5, "dp": 0.8, "t": DAY0})) as provider:
            quote = await provider.fetch_quote("aapl")

        assert quote.symbol == "AAPL"
        assert quote.source is AssetClass.EQUITY
        assert quote.price == Decimal("187.5")
        assert quote.change_24h == Decimal("0.8")
        assert quote.change_30d is None
        assert quote.observed_at == datetime(2025, 1, 1, tzinfo=UTC)

    async def test_zero_quote_is_not_found(self) -> None:
        payload = {"c": 0, "d": None, "dp": None, "h": 0, "l": 0, "o": 0, "pc": 0, "t": 0}
        async with _provider(lambda r: _json(payload)) as provider:
            with pytest.raises(NotFound):
                await provider.fetch_quote("ZZZZ")

    async def test_server_error_is_unavailable(self) -> None:
        async with _provider(lambda r: _json({}, 500)) as provider:
            with pytest.raises(ProviderUnavailable, match="HTTP 500"):
                await provider.fetch_quote("AAPL")


class TestFetchCandles:
    """Test /stock/candle column mapping."""

    async def test_columns_mapped_and_sorted(self) -> None:
        payload = {
            "s": "ok",
            "t": [DAY0 + DAY, DAY0],
            "o": [101, 100],
            "h": [102, 101],
            "l": [100, 99],
            "c": [101.5, 100.5],
            "v": [2000, 1000],
        }
        seen: list[httpx.QueryParams] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.params)
            return _json(payload)

        async with _provider(handler) as provider:
            series = await provider.fetch_candles("AAPL", "D", 30)

        params = seen[0]
        assert params["resolution"] == "D"
        assert int(params["to"]) - int(params["from"]) == 30 * DAY
        assert series.resolution == "D"
        assert series.closes == (Decimal("100.5"), Decimal("101.5"))
        assert series.volumes == (Decimal("1000"), Decimal("2000"))

    async def test_no_data_is_not_found(self) -> None:
        async with _provider(lambda r: _json({"s": "no_data"})) as provider:
            with pytest.raises(NotFound):
                await provider.fetch_candles("AAPL")

    async def test_unexpected_status_is_unavailable(self) -> None:
        async with _provider(lambda r: _json({"s": "error"})) as provider:
            with pytest.raises(ProviderUnavailable):
                await provider.fetch_candles("AAPL")

    async def test_mismatched_columns_rejected(self) -> None:
        payload = {
            "s": "ok",
            "t": [DAY0, DAY0 + DAY],
            "o": [100],
            "h": [101, 102],
            "l": [99, 100],
            "c": [100.5, 101],
        }
        async with _provider(lambda r: _json(payload)) as provider:
            with pytest.raises(ProviderUnavailable, match="mismatched"):
                await provider.fetch_candles("AAPL")

    async def test_unsupported_resolution_is_invalid(self) -> None:
        async with _provider(lambda r: _json({})) as provider:
            with pytest.raises(InvalidArgument):
                await provider.fetch_candles("AAPL", "2H")


class TestFetchNews:
    async def test_company_news_mapped(self) -> None:
        items = [
            {
                "headline": "Apple beats estimates",
                "url": "https://example.com/a",
                "source": "Reuters",
                "datetime": DAY0,
                "summary": "Quarterly results.",
            },
            {"headline": "Short note", "url": "https://example.com/b", "datetime": DAY0, "summary": ""},
        ]

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path.endswith("/company-news")
            assert date.fromisoformat(request.url.params["from"]) < date.fromisoformat(
                request.url.params["to"]
            )
            return _json(items)

        async with _provider(handler) as provider:
            news = await provider.fetch_news("AAPL")

        assert news[0].source == "Reuters"
        assert news[0].summary == "Quarterly results."
        assert news[1].source == "Finnhub"
        assert news[1].summary is None

    async def test_news_missing_headline_is_unavailable(self) -> None:
        async with _provider(lambda r: _json([{"url": "x", "datetime": DAY0}])) as provider:
            with pytest.raises(ProviderUnavailable):
                await provider.fetch_news("AAPL")


class TestFetchSentiment:
    async def test_latest_period_collapsed(self) -> None:
        items = [
            {"period": "2025-01-01", "buy": 1, "strongBuy": 1, "hold": 1, "sell": 1, "strongSell": 0},
            {"period": "2025-02-01", "buy": 20, "strongBuy": 10, "hold": 8, "sell": 1, "strongSell": 1},
        ]
        async with _provider(lambda r: _json(items)) as provider:
            ratings = await provider.fetch_sentiment("AAPL")

        assert ratings == AnalystRatings(buy=30, hold=8, sell=2, period="2025-02-01")

    async def test_empty_is_not_found(self) -> None:
        async with _provider(lambda r: _json([])) as provider:
            with pytest.raises(NotFound):
                await provider.fetch_sentiment("AAPL")


class TestFetchEarnings:
    async def test_earliest_date(self) -> None:
        payload = {
            "earningsCalendar": [
                {"date": "2025-05-01", "symbol": "AAPL"},
                {"date": "2025-01-30", "symbol": "AAPL"},
            ]
        }
        async with _provider(lambda r: _json(payload)) as provider:
            event = await provider.fetch_earnings("AAPL")
        assert event is not None
        assert event.date == date(2025, 1, 30)

    async def test_none_scheduled(self) -> None:
        async with _provider(lambda r: _json({"earningsCalendar": []})) as provider:
            assert await provider.fetch_earnings("AAPL") is None


class TestWrongShapePayloads:
    """Valid JSON of the wrong shape is a provider failure, never a crash."""

    @pytest.mark.parametrize(
        ("method", "body"),
        [
            ("fetch_quote", []),
            ("fetch_candles", []),
            ("fetch_news", {"headline": "not a list"}),
            ("fetch_news", ["not-an-object"]),
            ("fetch_sentiment", [["2025-01-01", 1, 2, 3]]),
            ("fetch_earnings", []),
        ],
    )
    async def test_wrong_top_level_type(self, method: str, body: Any) -> None:
        async with _provider(lambda r: _json(body)) as provider:
            with pytest.raises(ProviderUnavailable, match="malformed"):
                await getattr(provider, method)("AAPL")

    async def test_out_of_range_candle_timestamp(self) -> None:
        payload = {"s": "ok", "t": [10**20], "o": [1], "h": [2], "l": [0.5], "c": [1.5]}
        async with _provider(lambda r: _json(payload)) as provider:
            with pytest.raises(ProviderUnavailable, match="malformed candle"):
                await provider.fetch_candles("AAPL")

    async def test_out_of_range_quote_timestamp(self) -> None:
        async with _provider(lambda r: _json({"c": 187.5, "dp": 0.8, "t": 10**20})) as provider:
            with pytest.raises(ProviderUnavailable, match="malformed quote"):
                await provider.fetch_quote("AAPL")


class TestShapeEquivalence:
    """Row-wise and column-wise payloads normalize to identical candles."""

    def test_same_logical_data_same_series(self) -> None:
        rows = [
            [(DAY0 + DAY) * 1000, 101, 102, 100, 101.5],
            [DAY0 * 1000, 100, 101, 99, 100.5],
        ]
        columns = {
            "t": [DAY0, DAY0 + DAY],
            "o": [100, 101],
            "h": [101, 102],
            "l": [99, 100],
            "c": [100.5, 101.5],
        }
        now = datetime(2025, 6, 1, tzinfo=UTC)
        crypto = build_series("X", AssetClass.CRYPTO, "D", coingecko_ohlc_to_candles(rows), now=now)
        equity = build_series("X", AssetClass.CRYPTO, "D", finnhub_candles(columns), now=now)
        assert crypto.candles == equity.candles

    def test_recommendation_without_strong_fields(self) -> None:
        ratings = finnhub_recommendation([{"period": "2025-01-01", "buy": 3, "hold": 2, "sell": 1}])
        assert ratings is not None
        assert (ratings.buy, ratings.hold, ratings.sell) == (3, 2, 1)
