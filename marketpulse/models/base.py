"""SQLAlchemy base, async engine setup, DecimalText type, and SQLite pragmas."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import String, TypeDecorator

DEFAULT_BUSY_TIMEOUT_MS = 5000


class DecimalText(TypeDecorator[Decimal]):
    """Store Python Decimal as TEXT in SQLite for exact precision.

    All prices and percentage changes use this type to avoid
    floating-point errors.
    """

    impl = String
    cache_ok = True

    def process_bind_param(
        self,
        value: Decimal | None,
        dialect: Any,
    ) -> str | None:
        if value is None:
            return None
        return str(value)

    def process_result_value(
        self,
        value: str | None,
        dialect: Any,
    ) -> Decimal | None:
        if value is None:
            return None
        return Decimal(value)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def make_pragma_listener(busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> Any:
    """Build a "connect" listener that sets SQLite pragmas.

    SQLite pragmas are per-connection, not per-database, so they must be
    set on every new connection. WAL lets readers proceed while a writer
    holds the lock; busy_timeout makes concurrent writers queue instead
    of failing with "database is locked".
    """

    def set_sqlite_pragmas(dbapi_connection: Any, connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return set_sqlite_pragmas


def create_sqlite_engine(
    db_path: str,
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
) -> AsyncEngine:
    """Create an aiosqlite engine with pragmas registered.

    ``db_path`` of ":memory:" (or "") gives an in-memory database.
    """
    if db_path in ("", ":memory:"):
        url = "sqlite+aiosqlite://"
    else:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        url = f"sqlite+aiosqlite:///{db_path}"
    engine = create_async_engine(url, echo=False)
    event.listen(engine.sync_engine, "connect", make_pragma_listener(busy_timeout_ms))
    return engine


async def init_schema(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet.

    Deployed databases are migrated with Alembic; this is for tests and
    first runs of the CLI.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
