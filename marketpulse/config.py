"""Pydantic Settings configuration models.

Config hierarchy (lowest to highest priority):
1. Pydantic defaults (in code below)
2. .env file (loaded by Pydantic Settings)
3. Environment variables (e.g., PULSE_FINNHUB__API_KEY=your-key)

Provider credentials are passed explicitly into each adapter at
construction; adapters never read the environment themselves.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})
VALID_LOG_FORMATS = frozenset({"console", "json"})
VALID_SOURCES = frozenset({"crypto", "equity"})

_SYMBOL_RE = re.compile(r"^[A-Z0-9.\-]{1,12}$")


class ProviderConfig(BaseModel):
    """Connection settings for one upstream market-data provider."""

    api_key: str = ""
    base_url: str
    timeout: float = Field(default=5.0, gt=0, le=60)

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an http(s) URL, got {v!r}")
        return v.rstrip("/")


class CoinGeckoConfig(ProviderConfig):
    base_url: str = "https://api.coingecko.com/api/v3"


class FearGreedConfig(ProviderConfig):
    base_url: str = "https://api.alternative.me"


class FinnhubConfig(ProviderConfig):
    """Finnhub requires an API key; without one every equity call fails."""

    base_url: str = "https://finnhub.io/api/v1"


class AggregationConfig(BaseModel):
    """Fan-out behaviour of the aggregation coordinator."""

    task_timeout_seconds: float = Field(default=5.0, ge=0.1, le=60.0)
    default_lookback_days: int = Field(default=7, ge=1, le=3650)
    persist_quotes: bool = True


class IndicatorConfig(BaseModel):
    """Technical indicator windows."""

    min_history: int = Field(default=200, ge=2)
    ma_periods: list[int] = Field(default=[20, 50, 200])
    rsi_period: int = Field(default=14, ge=2, le=100)
    macd_fast: int = Field(default=12, ge=2)
    macd_slow: int = Field(default=26, ge=3)
    macd_signal: int = Field(default=9, ge=2)
    bollinger_period: int = Field(default=20, ge=2)
    bollinger_stddev: float = Field(default=2.0, gt=0, le=5.0)
    support_window: int = Field(default=30, ge=1)

    @field_validator("ma_periods")
    @classmethod
    def validate_ma_periods(cls, v: list[int]) -> list[int]:
        if len(v) == 0:
            raise ValueError("ma_periods must not be empty")
        if any(p < 1 for p in v):
            raise ValueError(f"ma_periods must be positive, got {v}")
        return sorted(set(v))

    @model_validator(mode="after")
    def validate_windows(self) -> IndicatorConfig:
        if self.macd_fast >= self.macd_slow:
            raise ValueError(
                f"macd_fast ({self.macd_fast}) must be < macd_slow ({self.macd_slow})"
            )
        longest = max(
            max(self.ma_periods),
            self.rsi_period + 1,
            self.macd_slow + self.macd_signal - 1,
            self.bollinger_period,
            self.support_window,
        )
        if longest > self.min_history:
            raise ValueError(
                f"min_history ({self.min_history}) is shorter than the "
                f"longest indicator window ({longest})"
            )
        return self


class WatchlistEntry(BaseModel):
    """One instrument tracked by the price refresh."""

    symbol: str
    source: str = "crypto"

    @field_validator("symbol")
    @classmethod
    def validate_symbol(cls, v: str) -> str:
        v = v.strip().upper()
        if not _SYMBOL_RE.match(v):
            raise ValueError(f"Invalid symbol: {v}")
        return v

    @field_validator("source")
    @classmethod
    def validate_source(cls, v: str) -> str:
        v = v.lower()
        if v == "stock":
            v = "equity"
        if v not in VALID_SOURCES:
            raise ValueError(f"source must be one of {sorted(VALID_SOURCES)}, got {v}")
        return v


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Env var examples:
        PULSE_LOG_LEVEL=DEBUG
        PULSE_FINNHUB__API_KEY=your-key
        PULSE_AGGREGATION__TASK_TIMEOUT_SECONDS=3
        PULSE_WATCHLIST='[{"symbol":"BTC","source":"crypto"}]'
    """

    model_config = SettingsConfigDict(
        env_prefix="PULSE_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"
    log_format: str = "console"
    coingecko: CoinGeckoConfig = CoinGeckoConfig()
    fear_greed: FearGreedConfig = FearGreedConfig()
    finnhub: FinnhubConfig = FinnhubConfig()
    aggregation: AggregationConfig = AggregationConfig()
    indicators: IndicatorConfig = IndicatorConfig()
    watchlist: list[WatchlistEntry] = Field(
        default=[
            WatchlistEntry(symbol="BTC", source="crypto"),
            WatchlistEntry(symbol="ETH", source="crypto"),
            WatchlistEntry(symbol="AAPL", source="equity"),
        ],
    )
    db_path: str = "data/marketpulse.db"
    db_busy_timeout_ms: int = 5000

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in VALID_LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {sorted(VALID_LOG_LEVELS)}, got {v}"
            )
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in VALID_LOG_FORMATS:
            raise ValueError(
                f"log_format must be one of {sorted(VALID_LOG_FORMATS)}, got {v}"
            )
        return v
