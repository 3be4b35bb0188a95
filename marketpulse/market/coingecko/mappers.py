"""CoinGecko / Alternative.me payload to domain type converters.

All float-to-Decimal conversion happens here; this is the Decimal
boundary for the crypto adapter. CoinGecko delivers candles row-wise:
``[[ms, open, high, low, close], ...]`` (volume is not part of the OHLC
endpoint and defaults to zero).

Every function raises one of MALFORMED_PAYLOAD_ERRORS on a
malformed payload; the provider turns those into ProviderUnavailable.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from marketpulse.market.types import AssetClass, Candle, FearGreedIndex, NewsItem, Quote
from marketpulse.market.utils import optional_decimal, to_decimal
from marketpulse.utils.time import from_unix_ms, from_unix_seconds, parse_timestamp

MAX_NEWS_ITEMS = 20

# Ticker -> CoinGecko coin id for common coins (skips a search round-trip)
COIN_IDS: dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "SOL": "solana",
    "AVAX": "avalanche-2",
    "LINK": "chainlink",
    "MATIC": "matic-network",
    "ADA": "cardano",
    "DOT": "polkadot",
    "DOGE": "dogecoin",
    "SHIB": "shiba-inu",
    "UNI": "uniswap",
    "LTC": "litecoin",
    "XRP": "ripple",
    "BNB": "binancecoin",
    "ATOM": "cosmos",
    "XLM": "stellar",
    "TRX": "tron",
    "VET": "vechain",
    "ALGO": "algorand",
    "FIL": "filecoin",
    "AAVE": "aave",
    "COMP": "compound-governance-token",
    "MKR": "maker",
    "SNX": "havven",
    "CRV": "curve-dao-token",
    "SUSHI": "sushi",
    "YFI": "yearn-finance",
    "BAT": "basic-attention-token",
    "ZRX": "0x",
    "ENJ": "enjincoin",
    "MANA": "decentraland",
    "SAND": "the-sandbox",
    "AXS": "axie-infinity",
    "GALA": "gala",
    "APE": "apecoin",
    "LDO": "lido-dao",
    "IMX": "immutable-x",
    "OP": "optimism",
    "ARB": "arbitrum",
}


def coin_id_from_search(symbol: str, payload: dict[str, Any]) -> str | None:
    """Pick the coin id whose ticker matches ``symbol`` exactly."""
    for coin in payload.get("coins", []):
        if str(coin["symbol"]).upper() == symbol:
            return str(coin["id"])
    return None


def coingecko_quote(
    symbol: str,
    payload: dict[str, Any],
    observed_at: datetime,
) -> Quote:
    """Convert a ``/coins/{id}`` payload to a Quote.

    ``market_data.last_updated`` wins over ``observed_at`` when present.
    """
    market_data = payload["market_data"]
    price = market_data["current_price"]["usd"]
    if price is None:
        raise ValueError("current_price.usd is null")

    last_updated = market_data.get("last_updated")
    if last_updated:
        observed_at = parse_timestamp(last_updated)

    return Quote(
        symbol=symbol,
        source=AssetClass.CRYPTO,
        price=to_decimal(price),
        change_24h=optional_decimal(market_data.get("price_change_percentage_24h")),
        change_30d=optional_decimal(market_data.get("price_change_percentage_30d")),
        observed_at=observed_at,
    )


def coingecko_ohlc_to_candles(rows: list[list[Any]]) -> list[Candle]:
    """Convert ``/coins/{id}/ohlc`` rows to Candles (delivery order kept)."""
    if not isinstance(rows, list):
        raise TypeError(f"Expected a list of OHLC rows, got {type(rows).__name__}")
    candles: list[Candle] = []
    for row in rows:
        if len(row) < 5:
            raise ValueError(f"OHLC row too short: {row!r}")
        candles.append(
            Candle(
                timestamp=from_unix_ms(row[0]),
                open=to_decimal(row[1]),
                high=to_decimal(row[2]),
                low=to_decimal(row[3]),
                close=to_decimal(row[4]),
                volume=to_decimal(row[5]) if len(row) > 5 else Decimal("0"),
            )
        )
    return candles


def coingecko_status_updates_to_news(payload: dict[str, Any]) -> list[NewsItem]:
    """Convert ``/coins/{id}/status_updates`` to NewsItems."""
    items: list[NewsItem] = []
    for update in payload.get("status_updates", [])[:MAX_NEWS_ITEMS]:
        project = update.get("project") or {}
        items.append(
            NewsItem(
                title=update.get("description") or update.get("category") or "Update",
                url=project.get("website") or "https://www.coingecko.com",
                source=update.get("user") or "CoinGecko",
                published_at=parse_timestamp(update["created_at"]),
            )
        )
    return items


def fear_greed_to_index(payload: dict[str, Any]) -> FearGreedIndex:
    """Convert an Alternative.me ``/fng/`` payload to a FearGreedIndex."""
    latest = payload["data"][0]
    value = int(latest["value"])
    if not 0 <= value <= 100:
        raise ValueError(f"Fear/greed value out of range: {value}")
    return FearGreedIndex(
        value=value,
        classification=str(latest["value_classification"]),
        timestamp=from_unix_seconds(latest["timestamp"]),
    )
