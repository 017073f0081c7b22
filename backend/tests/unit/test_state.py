"""Tests for CandleStateStore and TimeframeState."""

from __future__ import annotations

from decimal import Decimal

import pytest

from candlestream.engine.state import CandleStateStore, TimeframeState
from candlestream.market.types import (
    ALL_TIMEFRAMES,
    CandleKey,
    FinalizeReason,
    InProgressCandle,
    Timeframe,
)
from tests.factories import MINUTE_MS, make_trade

ONE_MIN = Timeframe.ONE_MINUTE


def _candle(window_start: int, asset: str = "BTCUSDT") -> InProgressCandle:
    key = CandleKey(asset=asset, timeframe=ONE_MIN, window_start=window_start)
    trade = make_trade(asset=asset, event_time=window_start)
    return InProgressCandle.first(key, trade, Decimal("1"), Decimal("1"))


class TestTimeframeState:
    """Test the per-timeframe open-candle map."""

    def test_add_and_get(self) -> None:
        state = TimeframeState(ONE_MIN)
        state.add(_candle(0))
        assert state.get("BTCUSDT", 0) is not None
        assert state.get("BTCUSDT", MINUTE_MS) is None
        assert len(state) == 1

    def test_duplicate_key_rejected(self) -> None:
        state = TimeframeState(ONE_MIN)
        state.add(_candle(0))
        with pytest.raises(ValueError, match="already open"):
            state.add(_candle(0))

    def test_finalize_through_oldest_first(self) -> None:
        state = TimeframeState(ONE_MIN)
        state.add(_candle(MINUTE_MS))
        state.add(_candle(0))
        state.add(_candle(2 * MINUTE_MS))

        finalized = state.finalize_through("BTCUSDT", 2 * MINUTE_MS)

        assert [c.window_start for c in finalized] == [0, MINUTE_MS]
        assert len(state) == 1

    def test_finalize_through_is_per_asset(self) -> None:
        state = TimeframeState(ONE_MIN)
        state.add(_candle(0, asset="ETHUSDT"))
        assert state.finalize_through("BTCUSDT", 10 * MINUTE_MS) == []
        assert len(state) == 1

    def test_watermark_marks_closed_windows(self) -> None:
        state = TimeframeState(ONE_MIN)
        state.add(_candle(MINUTE_MS))
        state.finalize_through("BTCUSDT", 2 * MINUTE_MS)

        assert state.is_closed("BTCUSDT", 0)
        assert state.is_closed("BTCUSDT", MINUTE_MS)
        assert not state.is_closed("BTCUSDT", 2 * MINUTE_MS)
        assert not state.is_closed("ETHUSDT", 0)

    def test_finalize_stale_reason(self) -> None:
        state = TimeframeState(ONE_MIN)
        state.add(_candle(0))
        [candle] = state.finalize_stale(now_ms=3 * MINUTE_MS, stale_after_ms=2 * MINUTE_MS)
        assert candle.reason is FinalizeReason.IDLE_SWEEP
        assert state.open_keys() == []


class TestCandleStateStore:
    """Test the process-scoped container."""

    def test_one_state_per_timeframe(self) -> None:
        store = CandleStateStore(ALL_TIMEFRAMES)
        assert store.timeframes == ALL_TIMEFRAMES
        assert {s.timeframe for s in store} == set(ALL_TIMEFRAMES)

    def test_locks_are_independent(self) -> None:
        store = CandleStateStore(ALL_TIMEFRAMES)
        locks = {id(s.lock) for s in store}
        assert len(locks) == len(ALL_TIMEFRAMES)

    def test_open_count(self) -> None:
        store = CandleStateStore([ONE_MIN])
        store.state(ONE_MIN).add(_candle(0))
        store.state(ONE_MIN).add(_candle(0, asset="ETHUSDT"))
        assert store.open_count() == 2

    def test_empty_timeframes_rejected(self) -> None:
        with pytest.raises(ValueError, match="At least one timeframe"):
            CandleStateStore([])
