"""Candle service -- wires feed, normalizer, batcher, aggregator and timers.

Owns the process-level lifecycle:
- ingestion task: feed -> normalizer -> {tick batcher, candle aggregator}
- idle sweeper and retention pruner on their own timers
- persistence queue for every storage call

Shutdown order: ingestion and both timers stop first, buffered ticks are
handed off, then in-flight persistence drains best-effort. Candles still
open at shutdown are not persisted.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import structlog

from candlestream.config import AppConfig
from candlestream.engine.candle_aggregator import CandleAggregator
from candlestream.engine.retention import RetentionPruner
from candlestream.engine.state import CandleStateStore
from candlestream.engine.sweeper import IdleSweeper
from candlestream.engine.tick_batcher import TickBatcher
from candlestream.market.errors import MalformedTradeError
from candlestream.market.feed import TradeFeed
from candlestream.market.normalizer import normalize
from candlestream.market.types import ALL_TIMEFRAMES, FinalizedCandle, Trade
from candlestream.persistence.queue import PersistenceQueue
from candlestream.persistence.sink import PersistenceSink

log = structlog.get_logger()


class CandleService:
    """Runs the ingestion pipeline against one feed and one sink."""

    def __init__(
        self,
        config: AppConfig,
        sink: PersistenceSink,
        feed: TradeFeed,
    ) -> None:
        self._config = config
        self._sink = sink
        self._feed = feed
        self.queue = PersistenceQueue(config.persistence.timeout_s)
        self.store = CandleStateStore(ALL_TIMEFRAMES)
        self.aggregator = CandleAggregator(self.store, on_finalized=self._persist_candle)
        self.sweeper = IdleSweeper(
            self.store,
            interval_s=config.aggregator.sweep_interval_s,
            on_finalized=self._persist_candle,
            stale_after_windows=config.aggregator.stale_after_windows,
        )
        self.pruner = RetentionPruner(
            sink,
            config.retention.thresholds_ms(),
            interval_s=config.retention.interval_s,
            startup_delay_s=config.retention.startup_delay_s,
            timeout_s=config.persistence.timeout_s,
        )
        self.batcher = TickBatcher(config.batcher.batch_size, self._persist_ticks)
        self._tasks: list[asyncio.Task[None]] = []
        self.trades_ingested = 0
        self.messages_malformed = 0
        self.trades_rejected = 0
        self.ingest_restarts = 0

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def handle_message(self, message: Mapping[str, Any]) -> list[FinalizedCandle]:
        """Normalize one feed message and push it through both consumers.

        Malformed messages are logged and skipped; they never stop ingestion.
        A trade no timeframe accepted is not stored as a raw tick either.
        """
        try:
            trade = normalize(message)
        except MalformedTradeError as e:
            self.messages_malformed += 1
            log.warning("feed_message_malformed", field=e.field, error=e.message)
            return []
        if trade is None:
            return []

        self.trades_ingested += 1
        finalized = self.aggregator.ingest(trade)
        if self.aggregator.last_trade_rejected:
            self.trades_rejected += 1
        else:
            self.batcher.add(trade)
        return finalized

    async def start(self) -> None:
        if self.running:
            log.warning("candle_service_already_running")
            return

        loop = asyncio.get_running_loop()
        self._tasks = [
            loop.create_task(self._consume(), name="ingest"),
            loop.create_task(self.sweeper.run(), name="idle-sweeper"),
        ]
        if self._config.retention.enabled:
            self._tasks.append(
                loop.create_task(self.pruner.run(), name="retention-pruner")
            )
        log.info(
            "candle_service_started",
            timeframes=[tf.value for tf in ALL_TIMEFRAMES],
            batch_size=self.batcher.batch_size,
        )

    async def stop(self) -> None:
        await self._feed.close()
        for task in self._tasks:
            task.cancel()
        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        for task, result in zip(self._tasks, results):
            if isinstance(result, Exception):
                log.error(
                    "candle_service_task_failed",
                    task=task.get_name(),
                    error=str(result),
                )
        self._tasks = []

        self.batcher.flush()
        cancelled = await self.queue.drain(
            self._config.persistence.shutdown_drain_timeout_s
        )
        log.info(
            "candle_service_stopped",
            trades_ingested=self.trades_ingested,
            messages_malformed=self.messages_malformed,
            trades_rejected=self.trades_rejected,
            ingest_restarts=self.ingest_restarts,
            open_candles_dropped=self.store.open_count(),
            persistence_cancelled=cancelled,
        )

    async def _consume(self) -> None:
        """Drive the feed until it ends, restarting after unexpected failures."""
        while True:
            try:
                async for message in self._feed.stream():
                    self.handle_message(message)
                return
            except Exception:
                self.ingest_restarts += 1
                log.exception(
                    "ingest_failed",
                    restarts=self.ingest_restarts,
                    restart_in_s=self._config.feed.reconnect_delay_s,
                )
            await asyncio.sleep(self._config.feed.reconnect_delay_s)

    def _persist_candle(self, candle: FinalizedCandle) -> None:
        self.queue.submit(
            "upsert_candle",
            self._sink.upsert_candle(candle.timeframe, candle),
            asset=candle.asset,
            timeframe=candle.timeframe.value,
            window_start=candle.window_start,
        )

    def _persist_ticks(self, batch: list[Trade]) -> None:
        self.queue.submit(
            "insert_ticks",
            self._sink.insert_ticks(batch),
            batch_size=len(batch),
        )
