"""InMemoryPersistenceSink -- dict-backed PersistenceSink for testing.

Mirrors the SQL sink's identity rules: candles keyed by (asset,
window_start) per timeframe, ticks keyed by (asset, trade_id). Failures can
be injected per operation or per table to exercise error swallowing.
"""

from __future__ import annotations

from collections.abc import Sequence

from candlestream.market.errors import PersistenceError
from candlestream.market.types import FinalizedCandle, StoredCandle, Timeframe, Trade
from candlestream.persistence.sink import TICK_TABLE


class InMemoryPersistenceSink:
    """In-memory PersistenceSink for testing."""

    def __init__(self) -> None:
        self.candles: dict[Timeframe, dict[tuple[str, int], StoredCandle]] = {
            tf: {} for tf in Timeframe
        }
        self.ticks: dict[tuple[str, int], Trade] = {}
        self.upsert_calls = 0
        self.fail_upserts = False
        self.fail_inserts = False
        self.fail_tables: set[str] = set()

    async def upsert_candle(
        self,
        timeframe: Timeframe,
        candle: FinalizedCandle,
    ) -> None:
        self.upsert_calls += 1
        if self.fail_upserts:
            raise PersistenceError("injected upsert failure")
        self.candles[timeframe][(candle.asset, candle.window_start)] = StoredCandle(
            asset=candle.asset,
            timeframe=timeframe,
            window_start=candle.window_start,
            window_end=candle.window_end,
            open=candle.open,
            high=candle.high,
            low=candle.low,
            close=candle.close,
            volume=candle.volume,
            trade_count=candle.trade_count,
            last_trade_id=candle.last_trade_id,
        )

    async def insert_ticks(self, batch: Sequence[Trade]) -> int:
        if self.fail_inserts:
            raise PersistenceError("injected insert failure")
        inserted = 0
        for trade in batch:
            key = (trade.asset, trade.trade_id)
            if key not in self.ticks:
                self.ticks[key] = trade
                inserted += 1
        return inserted

    async def delete_older_than(
        self,
        table: str,
        age_threshold_ms: int,
        now_ms: int,
    ) -> int:
        if table in self.fail_tables:
            raise PersistenceError(f"injected delete failure on {table}")
        cutoff = now_ms - age_threshold_ms

        if table == TICK_TABLE:
            stale_ticks = [k for k, t in self.ticks.items() if t.event_time < cutoff]
            for tick_key in stale_ticks:
                del self.ticks[tick_key]
            return len(stale_ticks)

        for tf in Timeframe:
            if tf.table_name == table:
                rows = self.candles[tf]
                stale = [k for k, c in rows.items() if c.window_start < cutoff]
                for candle_key in stale:
                    del rows[candle_key]
                return len(stale)

        raise ValueError(f"Unknown table: {table}")

    async def query_candles(
        self,
        timeframe: Timeframe,
        asset: str,
        start_time: int | None = None,
        end_time: int | None = None,
    ) -> list[StoredCandle]:
        rows = [
            c
            for c in self.candles[timeframe].values()
            if c.asset == asset
            and (start_time is None or c.window_start >= start_time)
            and (end_time is None or c.window_start <= end_time)
        ]
        return sorted(rows, key=lambda c: c.window_start)
