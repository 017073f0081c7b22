"""SqlPersistenceSink -- PersistenceSink over SQLAlchemy async sessions.

Upserts and duplicate-tolerant inserts use SQLite's ON CONFLICT clauses,
so idempotency is enforced by the unique constraints on each table.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog
from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from candlestream.market.types import FinalizedCandle, StoredCandle, Timeframe, Trade
from candlestream.models.candle import CANDLE_MODELS, TickModel
from candlestream.persistence.sink import TICK_TABLE

log = structlog.get_logger()

_TABLE_TIMEFRAMES: dict[str, Timeframe] = {tf.table_name: tf for tf in Timeframe}

# Keeps multi-row INSERTs under SQLite's bound-parameter limit
_INSERT_CHUNK_ROWS = 150


class SqlPersistenceSink:
    """PersistenceSink backed by a relational database."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def upsert_candle(
        self,
        timeframe: Timeframe,
        candle: FinalizedCandle,
    ) -> None:
        model = CANDLE_MODELS[timeframe]
        values = {
            "asset": candle.asset,
            "window_start": candle.window_start,
            "window_end": candle.window_end,
            "open": candle.open,
            "high": candle.high,
            "low": candle.low,
            "close": candle.close,
            "volume": candle.volume,
            "trade_count": candle.trade_count,
            "last_trade_id": candle.last_trade_id,
        }
        stmt = sqlite_insert(model.__table__).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["asset", "window_start"],
            set_={
                key: stmt.excluded[key]
                for key in values
                if key not in ("asset", "window_start")
            },
        )
        async with self._session_factory() as session, session.begin():
            await session.execute(stmt)
        log.debug(
            "candle_upserted",
            asset=candle.asset,
            timeframe=timeframe.value,
            window_start=candle.window_start,
        )

    async def insert_ticks(self, batch: Sequence[Trade]) -> int:
        if not batch:
            return 0
        rows = [
            {
                "asset": trade.asset,
                "trade_id": trade.trade_id,
                "price": trade.price,
                "quantity": trade.quantity,
                "event_time": trade.event_time,
            }
            for trade in batch
        ]
        inserted = 0
        async with self._session_factory() as session, session.begin():
            for offset in range(0, len(rows), _INSERT_CHUNK_ROWS):
                stmt = (
                    sqlite_insert(TickModel.__table__)
                    .values(rows[offset : offset + _INSERT_CHUNK_ROWS])
                    .on_conflict_do_nothing(index_elements=["asset", "trade_id"])
                )
                result = await session.execute(stmt)
                inserted += max(result.rowcount, 0)
        log.debug("ticks_inserted", batch_size=len(batch), inserted=inserted)
        return inserted

    async def delete_older_than(
        self,
        table: str,
        age_threshold_ms: int,
        now_ms: int,
    ) -> int:
        cutoff = now_ms - age_threshold_ms
        if table == TICK_TABLE:
            stmt = delete(TickModel).where(TickModel.event_time < cutoff)
        elif table in _TABLE_TIMEFRAMES:
            model = CANDLE_MODELS[_TABLE_TIMEFRAMES[table]]
            stmt = delete(model).where(model.window_start < cutoff)
        else:
            raise ValueError(f"Unknown table: {table}")
        stmt = stmt.execution_options(synchronize_session=False)

        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt)
        return max(result.rowcount, 0)

    async def query_candles(
        self,
        timeframe: Timeframe,
        asset: str,
        start_time: int | None = None,
        end_time: int | None = None,
    ) -> list[StoredCandle]:
        model = CANDLE_MODELS[timeframe]
        stmt = select(model).where(model.asset == asset)
        if start_time is not None:
            stmt = stmt.where(model.window_start >= start_time)
        if end_time is not None:
            stmt = stmt.where(model.window_start <= end_time)
        stmt = stmt.order_by(model.window_start.asc())

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            rows = result.scalars().all()

        return [
            StoredCandle(
                asset=row.asset,
                timeframe=timeframe,
                window_start=row.window_start,
                window_end=row.window_end,
                open=row.open,
                high=row.high,
                low=row.low,
                close=row.close,
                volume=row.volume,
                trade_count=row.trade_count,
                last_trade_id=row.last_trade_id,
            )
            for row in rows
        ]
