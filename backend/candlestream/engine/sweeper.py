"""Idle sweeper -- force-finalizes candles that never saw a closing trade.

Illiquid assets may go quiet mid-window; without a sweep their candles
would stay open forever. A candle is stale once wall-clock time is more
than stale_after_windows durations past its window start.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import structlog

from candlestream.engine.candle_aggregator import FinalizedHandler, log_finalized
from candlestream.engine.state import CandleStateStore
from candlestream.market.types import FinalizedCandle
from candlestream.utils.time import now_ms

log = structlog.get_logger()


class IdleSweeper:
    """Periodic stale-candle finalizer over a CandleStateStore."""

    def __init__(
        self,
        store: CandleStateStore,
        interval_s: float = 60.0,
        on_finalized: FinalizedHandler | None = None,
        stale_after_windows: int = 2,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._interval_s = interval_s
        self._on_finalized = on_finalized
        self._stale_after_windows = stale_after_windows
        self._clock = clock
        self.sweeps = 0

    def sweep(self, now: int | None = None) -> list[FinalizedCandle]:
        """Finalize and evict every stale candle. Returns what was finalized."""
        if now is None:
            now = self._clock()

        finalized: list[FinalizedCandle] = []
        for state in self._store:
            stale_after_ms = self._stale_after_windows * state.timeframe.duration_ms
            with state.lock:
                finalized.extend(state.finalize_stale(now, stale_after_ms))

        self.sweeps += 1
        for candle in finalized:
            log_finalized(candle)
            if self._on_finalized is not None:
                self._on_finalized(candle)

        if finalized:
            log.info(
                "idle_sweep_complete",
                finalized=len(finalized),
                still_open=self._store.open_count(),
            )
        return finalized

    async def run(self) -> None:
        """Sweep every interval until cancelled. A failed sweep is logged, not fatal."""
        log.info("idle_sweeper_started", interval_s=self._interval_s)
        while True:
            await asyncio.sleep(self._interval_s)
            try:
                self.sweep()
            except Exception:
                log.exception("idle_sweep_failed")
