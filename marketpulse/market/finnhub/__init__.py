"""Finnhub equity adapter."""

from marketpulse.market.finnhub.provider import FinnhubProvider

__all__ = ["FinnhubProvider"]
