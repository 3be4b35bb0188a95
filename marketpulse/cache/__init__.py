"""Price cache: durable latest-quote store and bulk refresh."""

from marketpulse.cache.refresh import (
    RefreshItem,
    RefreshResult,
    apply_bulk_refresh,
    refresh_watchlist,
)
from marketpulse.cache.store import PriceCacheStore

__all__ = [
    "PriceCacheStore",
    "RefreshItem",
    "RefreshResult",
    "apply_bulk_refresh",
    "refresh_watchlist",
]
