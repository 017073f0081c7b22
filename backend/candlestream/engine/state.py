"""In-progress candle state, owned explicitly and shared by aggregator and sweeper.

One TimeframeState per timeframe, each behind its own lock. The aggregator
and the idle sweeper both mutate a timeframe's map only while holding that
timeframe's lock, so the two stay mutually exclusive even when driven from
different threads.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator

from candlestream.market.types import (
    CandleKey,
    FinalizedCandle,
    FinalizeReason,
    InProgressCandle,
    Timeframe,
)


class TimeframeState:
    """Open candles of one timeframe, keyed by asset then window start.

    closed_through tracks, per asset, the newest window already finalized.
    Windows at or before it are never reopened.
    """

    def __init__(self, timeframe: Timeframe) -> None:
        self.timeframe = timeframe
        self.lock = threading.Lock()
        self._open: dict[str, dict[int, InProgressCandle]] = {}
        self._closed_through: dict[str, int] = {}

    def get(self, asset: str, window_start: int) -> InProgressCandle | None:
        return self._open.get(asset, {}).get(window_start)

    def add(self, candle: InProgressCandle) -> None:
        key = candle.key
        windows = self._open.setdefault(key.asset, {})
        if key.window_start in windows:
            raise ValueError(f"Candle already open for {key}")
        windows[key.window_start] = candle

    def is_closed(self, asset: str, window_start: int) -> bool:
        closed = self._closed_through.get(asset)
        return closed is not None and window_start <= closed

    def finalize_through(
        self,
        asset: str,
        event_time: int,
        reason: FinalizeReason = FinalizeReason.CLOSING_TRADE,
    ) -> list[FinalizedCandle]:
        """Finalize every open window of asset whose window_end <= event_time."""
        windows = self._open.get(asset)
        if not windows:
            return []
        due = [ws for ws, c in windows.items() if c.window_end <= event_time]
        return [self._evict(asset, ws, reason) for ws in sorted(due)]

    def finalize_stale(
        self,
        now_ms: int,
        stale_after_ms: int,
    ) -> list[FinalizedCandle]:
        """Finalize every open window with now_ms - window_start > stale_after_ms."""
        finalized: list[FinalizedCandle] = []
        for asset in list(self._open):
            due = [
                ws for ws in self._open[asset] if now_ms - ws > stale_after_ms
            ]
            for ws in sorted(due):
                finalized.append(self._evict(asset, ws, FinalizeReason.IDLE_SWEEP))
        return finalized

    def open_keys(self) -> list[CandleKey]:
        return [
            candle.key
            for windows in self._open.values()
            for candle in windows.values()
        ]

    def __len__(self) -> int:
        return sum(len(windows) for windows in self._open.values())

    def _evict(
        self,
        asset: str,
        window_start: int,
        reason: FinalizeReason,
    ) -> FinalizedCandle:
        windows = self._open[asset]
        candle = windows.pop(window_start)
        if not windows:
            del self._open[asset]
        closed = self._closed_through.get(asset)
        if closed is None or window_start > closed:
            self._closed_through[asset] = window_start
        return candle.snapshot(reason)


class CandleStateStore:
    """Process-scoped container for every timeframe's in-progress state."""

    def __init__(self, timeframes: Iterable[Timeframe]) -> None:
        self._states = {tf: TimeframeState(tf) for tf in timeframes}
        if not self._states:
            raise ValueError("At least one timeframe is required")

    @property
    def timeframes(self) -> tuple[Timeframe, ...]:
        return tuple(self._states)

    def state(self, timeframe: Timeframe) -> TimeframeState:
        return self._states[timeframe]

    def __iter__(self) -> Iterator[TimeframeState]:
        return iter(self._states.values())

    def get(self, key: CandleKey) -> InProgressCandle | None:
        state = self._states[key.timeframe]
        with state.lock:
            return state.get(key.asset, key.window_start)

    def open_count(self) -> int:
        total = 0
        for state in self._states.values():
            with state.lock:
                total += len(state)
        return total
