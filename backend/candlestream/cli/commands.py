"""Click CLI commands for candle-stream."""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import TYPE_CHECKING

import click
import httpx

from candlestream.config import AppConfig

if TYPE_CHECKING:
    from candlestream.engine.retention import PruneResult


@click.group()
def cli() -> None:
    """candle-stream: live trade ingestion and multi-timeframe OHLC candles."""


@cli.command()
@click.option("--no-api", is_flag=True, help="Do not serve the query API.")
def run(no_api: bool) -> None:
    """Ingest the live trade feed and serve the query API."""
    config = AppConfig()
    _setup_logging(config)
    click.echo(f"Starting candle-stream for {', '.join(config.feed.symbols)}...")
    try:
        asyncio.run(_run_service(config, serve_api=not no_api))
    except KeyboardInterrupt:
        pass


async def _run_service(config: AppConfig, serve_api: bool) -> None:
    """Run ingestion (and optionally the API) until SIGINT/SIGTERM."""
    import uvicorn

    from candlestream.engine.service import CandleService
    from candlestream.market.binance.feed import BinanceTradeFeed
    from candlestream.persistence.database import create_tables, open_database
    from candlestream.persistence.sql_sink import SqlPersistenceSink
    from candlestream.query.api import create_app

    engine, session_factory = open_database(config)
    await create_tables(engine)
    sink = SqlPersistenceSink(session_factory)
    service = CandleService(config, sink, BinanceTradeFeed(config.feed))

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    server: uvicorn.Server | None = None
    server_task: asyncio.Task[None] | None = None
    if serve_api:
        server = uvicorn.Server(
            uvicorn.Config(
                create_app(sink),
                host=config.web.host,
                port=config.web.port,
                log_config=None,
            )
        )
        server_task = loop.create_task(server.serve(), name="query-api")

    await service.start()
    # uvicorn captures SIGINT/SIGTERM while serving; its exit also stops us
    waiters: list[asyncio.Future[object]] = [
        loop.create_task(stop_event.wait(), name="stop-signal"),
    ]
    if server_task is not None:
        waiters.append(server_task)
    try:
        await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
    finally:
        await service.stop()
        if server is not None and server_task is not None:
            server.should_exit = True
            await server_task
        waiters[0].cancel()
        await engine.dispose()


@cli.command()
def serve() -> None:
    """Serve the query API only (no ingestion)."""
    config = AppConfig()
    _setup_logging(config)
    try:
        asyncio.run(_serve_api(config))
    except KeyboardInterrupt:
        pass


async def _serve_api(config: AppConfig) -> None:
    import uvicorn

    from candlestream.persistence.database import create_tables, open_database
    from candlestream.persistence.sql_sink import SqlPersistenceSink
    from candlestream.query.api import create_app

    engine, session_factory = open_database(config)
    try:
        await create_tables(engine)
        server = uvicorn.Server(
            uvicorn.Config(
                create_app(SqlPersistenceSink(session_factory)),
                host=config.web.host,
                port=config.web.port,
                log_config=None,
            )
        )
        await server.serve()
    finally:
        await engine.dispose()


@cli.command()
def prune() -> None:
    """Run one retention pass and print rows deleted per table."""
    config = AppConfig()
    _setup_logging(config)
    try:
        result = asyncio.run(_prune_once(config))
    except Exception as e:
        raise click.ClickException(f"Retention pass failed: {e}") from e

    click.echo("Rows deleted:")
    for table, count in sorted(result.deleted.items()):
        click.echo(f"  {table:<12} {count}")
    for table, error in sorted(result.errors.items()):
        click.echo(f"  {table:<12} FAILED ({error})")
    if result.errors:
        sys.exit(1)


async def _prune_once(config: AppConfig) -> PruneResult:
    from candlestream.engine.retention import RetentionPruner
    from candlestream.persistence.database import create_tables, open_database
    from candlestream.persistence.sql_sink import SqlPersistenceSink

    engine, session_factory = open_database(config)
    try:
        await create_tables(engine)
        pruner = RetentionPruner(
            SqlPersistenceSink(session_factory),
            config.retention.thresholds_ms(),
            timeout_s=config.persistence.timeout_s,
        )
        return await pruner.prune_once()
    finally:
        await engine.dispose()


@cli.command()
def status() -> None:
    """Check whether the query API is up."""
    config = AppConfig()
    url = f"http://{config.web.host}:{config.web.port}/health"
    try:
        resp = httpx.get(url, timeout=5.0)
        click.echo(resp.text)
    except (httpx.ConnectError, httpx.ReadError, httpx.TimeoutException):
        click.echo("Service is not running (could not connect).")
        sys.exit(1)


@cli.command()
def config() -> None:
    """Show current configuration."""
    cfg = AppConfig()

    click.echo("=== candle-stream Configuration ===\n")

    click.echo(f"Log Level:    {cfg.log_level}")
    click.echo(f"Log Format:   {cfg.log_format}")
    click.echo(f"DB Path:      {cfg.db_path}")
    click.echo("")

    click.echo("[Feed]")
    click.echo(f"  URL:        {cfg.feed.ws_base_url}")
    click.echo(f"  Symbols:    {', '.join(cfg.feed.symbols)}")
    click.echo(f"  Gap Policy: {cfg.feed.gap_policy}")
    click.echo("")

    click.echo("[Aggregation]")
    click.echo(f"  Sweep Interval:   {cfg.aggregator.sweep_interval_s}s")
    click.echo(f"  Stale After:      {cfg.aggregator.stale_after_windows} windows")
    click.echo(f"  Tick Batch Size:  {cfg.batcher.batch_size}")
    click.echo("")

    click.echo("[Retention]")
    click.echo(f"  Enabled:    {cfg.retention.enabled}")
    click.echo(f"  Interval:   {cfg.retention.interval_s}s")
    click.echo(f"  Ticks:      {cfg.retention.tick_hours}h")
    click.echo(f"  1m:         {cfg.retention.candle_1m_days}d")
    click.echo(f"  5m:         {cfg.retention.candle_5m_days}d")
    click.echo(f"  10m:        {cfg.retention.candle_10m_days}d")
    click.echo(f"  30m:        {cfg.retention.candle_30m_days}d")
    click.echo("")

    click.echo(f"API:          http://{cfg.web.host}:{cfg.web.port}")


def _setup_logging(config: AppConfig) -> None:
    from candlestream.utils.logging import setup_logging

    setup_logging(level=config.log_level, log_format=config.log_format)
