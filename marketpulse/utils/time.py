"""UTC helpers.

All times are UTC and timezone-aware. Upstream providers report unix
epochs in either seconds (Finnhub, Alternative.me) or milliseconds
(CoinGecko); conversion happens here, never inline in the mappers.
"""

from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return the current UTC datetime, timezone-aware."""
    return datetime.now(UTC)


def format_timestamp(dt: datetime) -> str:
    """Format a datetime as ISO 8601 with microsecond precision and Z suffix.

    Output format: YYYY-MM-DDTHH:MM:SS.ffffffZ
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    utc_dt = dt.astimezone(UTC)
    return utc_dt.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def parse_timestamp(s: str) -> datetime:
    """Parse an ISO 8601 timestamp back to a UTC datetime.

    Naive inputs are assumed to be UTC.
    """
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def from_unix_seconds(value: int | float | str) -> datetime:
    """Convert a unix timestamp in seconds to a UTC datetime."""
    return datetime.fromtimestamp(float(value), tz=UTC)


def from_unix_ms(value: int | float | str) -> datetime:
    """Convert a unix timestamp in milliseconds to a UTC datetime."""
    return datetime.fromtimestamp(float(value) / 1000, tz=UTC)


def to_unix_seconds(dt: datetime) -> int:
    """Convert a datetime to whole unix seconds."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return int(dt.timestamp())
