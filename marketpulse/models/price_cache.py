"""Price cache database model.

Tables: price_cache
"""

from __future__ import annotations

from sqlalchemy import CheckConstraint, String
from sqlalchemy.orm import Mapped, mapped_column

from marketpulse.models.base import Base, DecimalText


class PriceCacheModel(Base):
    """Latest observed quote per (symbol, source). Last write wins."""

    __tablename__ = "price_cache"

    symbol: Mapped[str] = mapped_column(String, primary_key=True)
    source: Mapped[str] = mapped_column(
        String,
        CheckConstraint(
            "source IN ('crypto', 'equity')", name="ck_price_cache_source"
        ),
        primary_key=True,
    )
    price: Mapped[DecimalText] = mapped_column(DecimalText, nullable=False)
    change_24h: Mapped[DecimalText | None] = mapped_column(DecimalText, nullable=True)
    change_30d: Mapped[DecimalText | None] = mapped_column(DecimalText, nullable=True)
    # ISO 8601 with fixed width, so string order == time order
    observed_at: Mapped[str] = mapped_column(String, nullable=False)
