"""Database models package."""

from marketpulse.models.base import (
    Base,
    DecimalText,
    create_sqlite_engine,
    init_schema,
)
from marketpulse.models.price_cache import PriceCacheModel

__all__ = [
    "Base",
    "DecimalText",
    "PriceCacheModel",
    "create_sqlite_engine",
    "init_schema",
]
