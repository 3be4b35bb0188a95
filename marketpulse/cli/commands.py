"""Click CLI commands for marketpulse."""

from __future__ import annotations

import asyncio
import dataclasses
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any

import click

from marketpulse.config import AppConfig
from marketpulse.market.errors import InvalidArgument, MarketDataError
from marketpulse.market.types import AggregatedAssetView, EarningsEvent
from marketpulse.utils.logging import setup_logging
from marketpulse.utils.time import format_timestamp


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, datetime):
        return format_timestamp(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    raise TypeError(f"Not JSON serializable: {type(obj).__name__}")


def view_to_json(view: AggregatedAssetView) -> str:
    """Render an AggregatedAssetView as indented JSON."""
    return json.dumps(dataclasses.asdict(view), default=_json_default, indent=2)


@click.group()
def cli() -> None:
    """marketpulse: market data aggregation and price cache."""


@cli.command()
@click.argument("symbol")
@click.option(
    "--asset-class",
    "-a",
    default="crypto",
    show_default=True,
    help="crypto, equity (or stock).",
)
@click.option("--days", default=None, type=int, help="Lookback window in days.")
@click.option("--no-persist", is_flag=True, help="Do not write the quote to the cache.")
def aggregate(symbol: str, asset_class: str, days: int | None, no_persist: bool) -> None:
    """Fetch chart, quote, news, sentiment and indicators for SYMBOL."""
    cfg = AppConfig()
    setup_logging(level=cfg.log_level, log_format=cfg.log_format)
    try:
        view = asyncio.run(_run_aggregate(cfg, symbol, asset_class, days, no_persist))
    except InvalidArgument as e:
        raise click.ClickException(str(e)) from e
    click.echo(view_to_json(view))


async def _run_aggregate(
    cfg: AppConfig,
    symbol: str,
    asset_class: str,
    days: int | None,
    no_persist: bool,
) -> AggregatedAssetView:
    from marketpulse.cache.store import PriceCacheStore
    from marketpulse.engine.aggregator import AggregationCoordinator
    from marketpulse.engine.indicators import IndicatorEngine
    from marketpulse.market.registry import build_providers, close_providers

    providers = build_providers(cfg)
    engine = None
    store = None
    try:
        if not no_persist:
            engine, store = await _open_store(cfg, PriceCacheStore)
        coordinator = AggregationCoordinator(
            providers,
            engine=IndicatorEngine(cfg.indicators),
            store=store,
            config=cfg.aggregation,
        )
        return await coordinator.aggregate(symbol, asset_class, days)
    finally:
        await close_providers(providers)
        if engine is not None:
            await engine.dispose()


async def _open_store(cfg: AppConfig, store_cls: Any) -> tuple[Any, Any]:
    from sqlalchemy.ext.asyncio import async_sessionmaker

    from marketpulse.models.base import create_sqlite_engine, init_schema

    engine = create_sqlite_engine(cfg.db_path, cfg.db_busy_timeout_ms)
    await init_schema(engine)
    return engine, store_cls(async_sessionmaker(engine, expire_on_commit=False))


@cli.command()
@click.option(
    "--file",
    "items_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="JSON file with an array of {symbol, source, price, change24h} items.",
)
def refresh(items_file: Path | None) -> None:
    """Upsert prices into the cache from a file, or from the watchlist."""
    cfg = AppConfig()
    setup_logging(level=cfg.log_level, log_format=cfg.log_format)

    items: list[Any] | None = None
    if items_file is not None:
        try:
            payload = json.loads(items_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise click.ClickException(f"Invalid JSON in {items_file}: {e}") from e
        if isinstance(payload, dict):
            payload = payload.get("items")
        if not isinstance(payload, list):
            raise click.ClickException("Items must be an array")
        items = payload

    result = asyncio.run(_run_refresh(cfg, items))
    click.echo(
        f"Updated {result.updated} (skipped {result.skipped}, failed {result.failed})"
    )


async def _run_refresh(cfg: AppConfig, items: list[Any] | None) -> Any:
    from marketpulse.cache.refresh import apply_bulk_refresh, refresh_watchlist
    from marketpulse.cache.store import PriceCacheStore
    from marketpulse.market.registry import build_providers, close_providers

    engine, store = await _open_store(cfg, PriceCacheStore)
    try:
        if items is not None:
            return await apply_bulk_refresh(store, items)
        providers = build_providers(cfg)
        try:
            return await refresh_watchlist(store, providers, cfg.watchlist)
        finally:
            await close_providers(providers)
    finally:
        await engine.dispose()


@cli.command()
def prices() -> None:
    """List every cached price."""
    cfg = AppConfig()
    setup_logging(level=cfg.log_level, log_format=cfg.log_format)
    quotes = asyncio.run(_run_prices(cfg))
    if not quotes:
        click.echo("Price cache is empty.")
        return
    for q in quotes:
        change = f"{q.change_24h}%" if q.change_24h is not None else "-"
        click.echo(
            f"{q.symbol:<8} {q.source.value:<7} {q.price:>16} {change:>10}  "
            f"{format_timestamp(q.observed_at)}"
        )


async def _run_prices(cfg: AppConfig) -> list[Any]:
    from marketpulse.cache.store import PriceCacheStore

    engine, store = await _open_store(cfg, PriceCacheStore)
    try:
        return await store.list_all()
    finally:
        await engine.dispose()


@cli.command()
@click.argument("symbol")
def earnings(symbol: str) -> None:
    """Show the next scheduled earnings date for equity SYMBOL."""
    cfg = AppConfig()
    setup_logging(level=cfg.log_level, log_format=cfg.log_format)
    try:
        event = asyncio.run(_run_earnings(cfg, symbol))
    except MarketDataError as e:
        raise click.ClickException(str(e)) from e
    if event is None:
        click.echo(f"No upcoming earnings for {symbol.strip().upper()}.")
        return
    click.echo(f"{event.symbol} {event.date.isoformat()}")


async def _run_earnings(cfg: AppConfig, symbol: str) -> EarningsEvent | None:
    from marketpulse.market import finnhub

    async with finnhub.FinnhubProvider(cfg.finnhub) as provider:
        return await provider.fetch_earnings(symbol)


@cli.command()
def config() -> None:
    """Show current configuration."""
    cfg = AppConfig()

    click.echo("=== marketpulse Configuration ===\n")

    click.echo(f"Log Level:    {cfg.log_level}")
    click.echo(f"Log Format:   {cfg.log_format}")
    click.echo(f"DB Path:      {cfg.db_path}")
    click.echo("")

    click.echo("[Providers]")
    for name, provider in (
        ("CoinGecko", cfg.coingecko),
        ("Fear/Greed", cfg.fear_greed),
        ("Finnhub", cfg.finnhub),
    ):
        key_state = "set" if provider.api_key else "not set"
        click.echo(f"  {name:<11} {provider.base_url} (key {key_state}, timeout {provider.timeout}s)")
    click.echo("")

    click.echo("[Aggregation]")
    click.echo(f"  Task Timeout:     {cfg.aggregation.task_timeout_seconds}s")
    click.echo(f"  Default Lookback: {cfg.aggregation.default_lookback_days} days")
    click.echo(f"  Persist Quotes:   {cfg.aggregation.persist_quotes}")
    click.echo("")

    click.echo("[Indicators]")
    click.echo(f"  Min History:  {cfg.indicators.min_history}")
    click.echo(f"  MA Periods:   {', '.join(str(p) for p in cfg.indicators.ma_periods)}")
    click.echo(f"  RSI Period:   {cfg.indicators.rsi_period}")
    click.echo("")

    watch = ", ".join(f"{e.symbol}/{e.source}" for e in cfg.watchlist)
    click.echo(f"Watchlist:    {watch}")
