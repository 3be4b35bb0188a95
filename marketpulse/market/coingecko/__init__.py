"""CoinGecko crypto adapter."""

from marketpulse.market.coingecko.provider import CoinGeckoProvider

__all__ = ["CoinGeckoProvider"]
