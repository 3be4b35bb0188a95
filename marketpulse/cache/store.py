"""PriceCacheStore: durable latest-quote cache keyed by (symbol, source).

Each upsert is a single ``INSERT ... ON CONFLICT DO UPDATE`` statement in
its own transaction, so a key's record is always written whole and keys
never share a transaction. SQLite serializes writers, which makes the
last committed upsert win; readers on other connections are not blocked
(WAL).

``observed_at`` is taken from a per-store monotonic clock and the SQL
update keeps the larger of the stored and incoming value, so a reader
never sees it move backwards even when two writers on the same key
commit out of start order.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from decimal import Decimal

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketpulse.market.errors import InvalidArgument
from marketpulse.market.types import AssetClass, Quote
from marketpulse.market.utils import normalize_symbol, optional_decimal, to_decimal
from marketpulse.models.price_cache import PriceCacheModel
from marketpulse.utils.time import format_timestamp, parse_timestamp, utc_now

log = structlog.get_logger()

PriceInput = Decimal | int | float | str


def _row_to_quote(row: PriceCacheModel) -> Quote:
    return Quote(
        symbol=row.symbol,
        source=AssetClass(row.source),
        price=row.price,  # type: ignore[arg-type]
        change_24h=row.change_24h,  # type: ignore[arg-type]
        change_30d=row.change_30d,  # type: ignore[arg-type]
        observed_at=parse_timestamp(row.observed_at),
    )


def _decimal_arg(name: str, value: PriceInput | None, *, required: bool) -> Decimal | None:
    if value is None:
        if required:
            raise InvalidArgument(f"{name} is required")
        return None
    try:
        return to_decimal(value) if required else optional_decimal(value)
    except ValueError as exc:
        raise InvalidArgument(f"Invalid {name}: {value!r}") from exc


class PriceCacheStore:
    """Async key-value store of the latest Quote per (symbol, source)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._clock_lock = asyncio.Lock()
        self._last_observed: datetime | None = None

    async def _next_observed_at(self) -> datetime:
        async with self._clock_lock:
            now = utc_now()
            if self._last_observed is not None and now < self._last_observed:
                now = self._last_observed
            self._last_observed = now
            return now

    async def upsert(
        self,
        symbol: str,
        source: AssetClass | str,
        price: PriceInput,
        change_24h: PriceInput | None = None,
        change_30d: PriceInput | None = None,
    ) -> Quote:
        """Insert or overwrite the record for (symbol, source).

        Raises:
            InvalidArgument: Empty symbol, unknown source, or a price /
                change that is not a finite number.
        """
        symbol = normalize_symbol(symbol)
        asset_class = AssetClass.parse(source)
        price_dec = _decimal_arg("price", price, required=True)
        change_24h_dec = _decimal_arg("change_24h", change_24h, required=False)
        change_30d_dec = _decimal_arg("change_30d", change_30d, required=False)

        observed_at = await self._next_observed_at()
        stamp = format_timestamp(observed_at)

        stmt = sqlite_insert(PriceCacheModel).values(
            symbol=symbol,
            source=asset_class.value,
            price=price_dec,
            change_24h=change_24h_dec,
            change_30d=change_30d_dec,
            observed_at=stamp,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[PriceCacheModel.symbol, PriceCacheModel.source],
            set_={
                "price": stmt.excluded.price,
                "change_24h": stmt.excluded.change_24h,
                "change_30d": stmt.excluded.change_30d,
                "observed_at": func.max(
                    PriceCacheModel.observed_at, stmt.excluded.observed_at
                ),
            },
        )

        async with self._session_factory() as session, session.begin():
            await session.execute(stmt)

        log.debug(
            "price_cache_upsert",
            symbol=symbol,
            source=asset_class.value,
            price=str(price_dec),
            observed_at=stamp,
        )
        assert price_dec is not None
        return Quote(
            symbol=symbol,
            source=asset_class,
            price=price_dec,
            change_24h=change_24h_dec,
            change_30d=change_30d_dec,
            observed_at=observed_at,
        )

    async def get(self, symbol: str, source: AssetClass | str) -> Quote | None:
        """Point lookup; None when the key has never been written."""
        symbol = normalize_symbol(symbol)
        asset_class = AssetClass.parse(source)
        async with self._session_factory() as session:
            row = await session.get(PriceCacheModel, (symbol, asset_class.value))
            if row is None:
                return None
            return _row_to_quote(row)

    async def list_all(self) -> list[Quote]:
        """All cached quotes ordered by symbol, then source."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(PriceCacheModel).order_by(
                    PriceCacheModel.symbol, PriceCacheModel.source
                )
            )
            return [_row_to_quote(row) for row in result.scalars()]

    async def delete(self, symbol: str, source: AssetClass | str) -> bool:
        """Remove a key. Returns True if a record was deleted."""
        symbol = normalize_symbol(symbol)
        asset_class = AssetClass.parse(source)
        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                delete(PriceCacheModel).where(
                    PriceCacheModel.symbol == symbol,
                    PriceCacheModel.source == asset_class.value,
                )
            )
        deleted = bool(result.rowcount)
        if deleted:
            log.info("price_cache_delete", symbol=symbol, source=asset_class.value)
        return deleted
