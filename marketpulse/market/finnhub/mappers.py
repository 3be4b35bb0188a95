"""Finnhub payload to domain type converters.

All float-to-Decimal conversion happens here; this is the Decimal
boundary for the equity adapter. Finnhub delivers candles column-wise:
``{"s": "ok", "t": [...], "o": [...], "h": [...], "l": [...],
"c": [...], "v": [...]}`` with unix-second timestamps.

Every function raises one of MALFORMED_PAYLOAD_ERRORS on a
malformed payload; the provider turns those into ProviderUnavailable.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from marketpulse.market.types import (
    AnalystRatings,
    AssetClass,
    Candle,
    NewsItem,
    Quote,
)
from marketpulse.market.utils import optional_decimal, to_decimal
from marketpulse.utils.time import from_unix_seconds

MAX_NEWS_ITEMS = 20

_CANDLE_COLUMNS = ("t", "o", "h", "l", "c")

# Candle status values reported in the "s" field
STATUS_OK = "ok"
STATUS_NO_DATA = "no_data"


def finnhub_quote_has_data(payload: dict[str, Any]) -> bool:
    """Finnhub answers unknown tickers with an all-zero quote, not a 404."""
    price = payload.get("c")
    return price is not None and to_decimal(price) != Decimal("0")


def finnhub_quote(
    symbol: str,
    payload: dict[str, Any],
    observed_at: datetime,
) -> Quote:
    """Convert a ``/quote`` payload to a Quote.

    ``dp`` is the percent change against the previous close. Finnhub has
    no 30-day figure.
    """
    if payload.get("t"):
        observed_at = from_unix_seconds(payload["t"])
    return Quote(
        symbol=symbol,
        source=AssetClass.EQUITY,
        price=to_decimal(payload["c"]),
        change_24h=optional_decimal(payload.get("dp")),
        change_30d=None,
        observed_at=observed_at,
    )


def finnhub_candles(payload: dict[str, Any]) -> list[Candle]:
    """Convert a ``/stock/candle`` column payload to Candles.

    Columns of unequal length mean a truncated payload and are rejected.
    """
    columns = {key: payload[key] for key in _CANDLE_COLUMNS}
    volumes = payload.get("v")
    lengths = {len(col) for col in columns.values()}
    if volumes is not None:
        lengths.add(len(volumes))
    if len(lengths) != 1:
        raise ValueError(f"Candle columns have mismatched lengths: {sorted(lengths)}")

    candles: list[Candle] = []
    for i, ts in enumerate(columns["t"]):
        candles.append(
            Candle(
                timestamp=from_unix_seconds(ts),
                open=to_decimal(columns["o"][i]),
                high=to_decimal(columns["h"][i]),
                low=to_decimal(columns["l"][i]),
                close=to_decimal(columns["c"][i]),
                volume=to_decimal(volumes[i]) if volumes is not None else Decimal("0"),
            )
        )
    return candles


def finnhub_news(items: list[dict[str, Any]]) -> list[NewsItem]:
    """Convert ``/company-news`` items to NewsItems."""
    news: list[NewsItem] = []
    for article in items[:MAX_NEWS_ITEMS]:
        news.append(
            NewsItem(
                title=str(article["headline"]),
                url=str(article["url"]),
                source=str(article.get("source") or "Finnhub"),
                published_at=from_unix_seconds(article["datetime"]),
                summary=article.get("summary") or None,
            )
        )
    return news


def finnhub_recommendation(items: list[dict[str, Any]]) -> AnalystRatings | None:
    """Collapse the latest ``/stock/recommendation`` period into buy/hold/sell."""
    if not items:
        return None
    latest = max(items, key=lambda item: str(item["period"]))
    return AnalystRatings(
        buy=int(latest["buy"]) + int(latest.get("strongBuy", 0)),
        hold=int(latest["hold"]),
        sell=int(latest["sell"]) + int(latest.get("strongSell", 0)),
        period=str(latest["period"]),
    )


def finnhub_earnings_date(payload: dict[str, Any]) -> date | None:
    """Earliest upcoming date from a ``/calendar/earnings`` payload."""
    entries = payload.get("earningsCalendar") or []
    if not entries:
        return None
    return min(date.fromisoformat(str(entry["date"])) for entry in entries)
