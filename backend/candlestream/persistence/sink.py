"""PersistenceSink protocol -- durable store for ticks and candles.

The candle engine only ever calls these operations; implementations
(SQLAlchemy, in-memory) decide how idempotency is enforced.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from candlestream.market.types import FinalizedCandle, StoredCandle, Timeframe, Trade

TICK_TABLE = "tick"


def retention_tables() -> list[str]:
    """Every table the retention pruner manages."""
    return [TICK_TABLE, *(tf.table_name for tf in Timeframe)]


@runtime_checkable
class PersistenceSink(Protocol):
    """Async storage interface used by the aggregator, batcher, pruner and queries."""

    async def upsert_candle(
        self,
        timeframe: Timeframe,
        candle: FinalizedCandle,
    ) -> None:
        """Insert or replace a finalized candle.

        Idempotent under retry: identity is (asset, window_start) within
        the timeframe's table, never more than one row per identity.
        """
        ...

    async def insert_ticks(self, batch: Sequence[Trade]) -> int:
        """Bulk insert raw trades, skipping duplicates on (asset, trade_id).

        Duplicates within the batch or already stored are ignored, not
        errors. Returns the number of rows actually inserted.
        """
        ...

    async def delete_older_than(
        self,
        table: str,
        age_threshold_ms: int,
        now_ms: int,
    ) -> int:
        """Delete rows of table older than now_ms - age_threshold_ms.

        Ticks age by event_time, candles by window_start. Returns rows deleted.
        """
        ...

    async def query_candles(
        self,
        timeframe: Timeframe,
        asset: str,
        start_time: int | None = None,
        end_time: int | None = None,
    ) -> list[StoredCandle]:
        """Candles for asset with start_time <= window_start <= end_time, ascending."""
        ...
