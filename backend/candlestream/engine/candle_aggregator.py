"""Multi-timeframe candle aggregation from a live trade stream.

Push-based: call ingest() with each normalized trade, in arrival order.
Each trade updates one candle per timeframe; the timeframes are independent
state machines that share only the input trade. Finalized candles are
returned and handed to the on_finalized callback (normally the persistence
queue).
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable

import structlog

from candlestream.engine.state import CandleStateStore
from candlestream.market.errors import MalformedTradeError
from candlestream.market.types import (
    CandleKey,
    FinalizedCandle,
    FinalizeReason,
    InProgressCandle,
    Timeframe,
    Trade,
)
from candlestream.market.utils import to_decimal
from candlestream.utils.time import format_ms

log = structlog.get_logger()

FinalizedHandler = Callable[[FinalizedCandle], None]


def log_finalized(candle: FinalizedCandle) -> None:
    """Emit the standard candle_finalized log line."""
    log.info(
        "candle_finalized",
        asset=candle.asset,
        timeframe=candle.timeframe.value,
        window_start=candle.window_start,
        window_start_utc=format_ms(candle.window_start),
        open=str(candle.open),
        high=str(candle.high),
        low=str(candle.low),
        close=str(candle.close),
        trades=candle.trade_count,
        reason=candle.reason.value,
    )


class CandleAggregator:
    """Folds trades into in-progress candles for every timeframe in the store.

    Design decisions:
    - A trade older than every trade seen for its window becomes the open;
      one at or after the newest seen becomes the close.
    - A trade at or past a window's last millisecond closes that window,
      and any older window still open for the same asset and timeframe.
    - Trades for an already finalized window are dropped, not re-aggregated.
    - A malformed price or quantity fails only that timeframe's update.
    """

    def __init__(
        self,
        store: CandleStateStore,
        on_finalized: FinalizedHandler | None = None,
    ) -> None:
        self._store = store
        self._on_finalized = on_finalized
        self.rejected: Counter[Timeframe] = Counter()
        self.late_dropped: Counter[Timeframe] = Counter()
        self.last_trade_rejected = False

    @property
    def timeframes(self) -> tuple[Timeframe, ...]:
        return self._store.timeframes

    def ingest(self, trade: Trade) -> list[FinalizedCandle]:
        """Process one trade. Returns candles finalized by it, oldest first.

        last_trade_rejected is set when no timeframe accepted the trade.
        """
        finalized: list[FinalizedCandle] = []
        rejected = 0
        for timeframe in self._store.timeframes:
            try:
                finalized.extend(self._update(trade, timeframe))
            except MalformedTradeError as e:
                rejected += 1
                self.rejected[timeframe] += 1
                log.warning(
                    "trade_rejected",
                    asset=trade.asset,
                    trade_id=trade.trade_id,
                    timeframe=timeframe.value,
                    field=e.field,
                    error=e.message,
                )

        self.last_trade_rejected = rejected == len(self._store.timeframes)
        self._emit(finalized)
        return finalized

    def _update(self, trade: Trade, timeframe: Timeframe) -> list[FinalizedCandle]:
        price = to_decimal(trade.price, "price")
        quantity = to_decimal(trade.quantity, "quantity")
        if quantity < 0:
            raise MalformedTradeError("quantity", f"negative: {trade.quantity!r}")

        key = CandleKey.for_trade(trade, timeframe)
        state = self._store.state(timeframe)

        with state.lock:
            candle = state.get(key.asset, key.window_start)
            if candle is None:
                if state.is_closed(key.asset, key.window_start):
                    self.late_dropped[timeframe] += 1
                    log.debug(
                        "late_trade_dropped",
                        asset=trade.asset,
                        trade_id=trade.trade_id,
                        timeframe=timeframe.value,
                        window_start=key.window_start,
                    )
                    return []
                state.add(InProgressCandle.first(key, trade, price, quantity))
            else:
                candle.apply(trade, price, quantity)

            return state.finalize_through(
                trade.asset, trade.event_time, FinalizeReason.CLOSING_TRADE
            )

    def _emit(self, finalized: list[FinalizedCandle]) -> None:
        for candle in finalized:
            log_finalized(candle)
            if self._on_finalized is not None:
                self._on_finalized(candle)
