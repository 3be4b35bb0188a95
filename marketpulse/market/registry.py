"""Provider registry: one adapter per asset class, built from AppConfig."""

from __future__ import annotations

import structlog

from marketpulse.config import AppConfig
from marketpulse.market.coingecko.provider import CoinGeckoProvider
from marketpulse.market.finnhub.provider import FinnhubProvider
from marketpulse.market.provider import MarketDataProvider
from marketpulse.market.types import AssetClass

log = structlog.get_logger()


def build_providers(config: AppConfig) -> dict[AssetClass, MarketDataProvider]:
    """Create the live adapters for every asset class."""
    return {
        AssetClass.CRYPTO: CoinGeckoProvider(config.coingecko, config.fear_greed),
        AssetClass.EQUITY: FinnhubProvider(config.finnhub),
    }


async def close_providers(providers: dict[AssetClass, MarketDataProvider]) -> None:
    """Close every adapter; one failing close does not skip the others."""
    for asset_class, provider in providers.items():
        try:
            await provider.aclose()
        except Exception:
            log.exception("provider_close_failed", asset_class=asset_class.value)
