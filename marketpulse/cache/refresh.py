"""Bulk price refresh into the PriceCacheStore.

Two entry points for an external refresh trigger:

- apply_bulk_refresh: items already fetched elsewhere (e.g. a webhook
  payload) are validated one by one and upserted. Invalid items are
  skipped and tallied; they never abort the batch.
- refresh_watchlist: pulls quotes for a watchlist from the providers
  concurrently, then upserts the ones that arrived.

Both are a sequence of independent per-key upserts. A failure partway
through leaves every earlier upsert applied.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from sqlalchemy.exc import SQLAlchemyError

from marketpulse.cache.store import PriceCacheStore
from marketpulse.config import WatchlistEntry
from marketpulse.market.errors import InvalidArgument, MarketDataError
from marketpulse.market.provider import MarketDataProvider
from marketpulse.market.types import AssetClass, Quote

log = structlog.get_logger()


class RefreshItem(BaseModel):
    """One bulk-refresh item as delivered by the refresh trigger."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    symbol: str = Field(min_length=1)
    source: AssetClass
    price: Decimal = Field(allow_inf_nan=False)
    change_24h: Decimal | None = Field(
        default=None, alias="change24h", allow_inf_nan=False
    )
    change_30d: Decimal | None = Field(
        default=None, alias="change30d", allow_inf_nan=False
    )

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("symbol must not be blank")
        return v

    @field_validator("price", "change_24h", "change_30d", mode="before")
    @classmethod
    def float_via_str(cls, v: Any) -> Any:
        if isinstance(v, bool):
            raise ValueError("expected a number, got a boolean")
        if isinstance(v, float):
            return Decimal(str(v))
        return v

    @field_validator("source", mode="before")
    @classmethod
    def parse_source(cls, v: Any) -> AssetClass:
        try:
            return AssetClass.parse(v)
        except InvalidArgument as exc:
            raise ValueError(str(exc)) from exc


@dataclass
class RefreshResult:
    """Outcome tally of one refresh pass."""

    updated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.updated + self.skipped + self.failed


async def apply_bulk_refresh(
    store: PriceCacheStore,
    items: Iterable[Mapping[str, Any]],
) -> RefreshResult:
    """Validate and upsert each item independently.

    Items missing symbol/source/price (or carrying junk in them) are
    skipped. Storage errors on one item are counted as failed and the
    batch continues.
    """
    result = RefreshResult()
    for index, raw in enumerate(items):
        try:
            item = RefreshItem.model_validate(raw)
        except ValidationError as exc:
            result.skipped += 1
            result.errors.append(f"item {index}: {exc.error_count()} validation error(s)")
            log.warning(
                "bulk_refresh_item_skipped",
                index=index,
                errors=[e["loc"] for e in exc.errors()],
            )
            continue

        try:
            await store.upsert(
                item.symbol,
                item.source,
                item.price,
                item.change_24h,
                item.change_30d,
            )
        except InvalidArgument as exc:
            result.skipped += 1
            result.errors.append(f"item {index}: {exc}")
            log.warning("bulk_refresh_item_skipped", index=index, error=str(exc))
            continue
        except SQLAlchemyError as exc:
            result.failed += 1
            result.errors.append(f"item {index}: storage error")
            log.error(
                "bulk_refresh_item_failed",
                index=index,
                symbol=item.symbol,
                error=str(exc),
            )
            continue
        result.updated += 1

    log.info(
        "bulk_refresh_complete",
        updated=result.updated,
        skipped=result.skipped,
        failed=result.failed,
    )
    return result


async def refresh_watchlist(
    store: PriceCacheStore,
    providers: Mapping[AssetClass, MarketDataProvider],
    entries: Sequence[WatchlistEntry],
) -> RefreshResult:
    """Fetch quotes for every watchlist entry and upsert the successes."""
    result = RefreshResult()
    targets: list[tuple[str, AssetClass]] = []
    for entry in entries:
        asset_class = AssetClass.parse(entry.source)
        if asset_class not in providers:
            result.skipped += 1
            result.errors.append(f"{entry.symbol}: no provider for {asset_class.value}")
            continue
        targets.append((entry.symbol, asset_class))

    outcomes = await asyncio.gather(
        *(providers[ac].fetch_quote(symbol) for symbol, ac in targets),
        return_exceptions=True,
    )

    for (symbol, asset_class), outcome in zip(targets, outcomes):
        if isinstance(outcome, MarketDataError):
            result.failed += 1
            result.errors.append(f"{symbol}: {outcome}")
            log.warning(
                "watchlist_quote_failed",
                symbol=symbol,
                source=asset_class.value,
                error=str(outcome),
            )
            continue
        if isinstance(outcome, BaseException):
            raise outcome
        quote: Quote = outcome
        try:
            await store.upsert(
                quote.symbol,
                quote.source,
                quote.price,
                quote.change_24h,
                quote.change_30d,
            )
        except SQLAlchemyError as exc:
            result.failed += 1
            result.errors.append(f"{symbol}: storage error")
            log.error("watchlist_upsert_failed", symbol=symbol, error=str(exc))
            continue
        result.updated += 1

    log.info(
        "watchlist_refresh_complete",
        updated=result.updated,
        skipped=result.skipped,
        failed=result.failed,
    )
    return result
