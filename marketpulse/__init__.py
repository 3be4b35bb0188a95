"""marketpulse: market data aggregation, indicators and price cache."""

__version__ = "0.1.0"
