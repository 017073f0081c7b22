"""Retention pruner -- deletes persisted rows past their table's age threshold.

Each table is pruned independently and concurrently. One table failing
never blocks the others; failures are logged as non-fatal and the pass
reports a single summary line.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field

import structlog

from candlestream.market.errors import PersistenceTimeoutError
from candlestream.persistence.sink import PersistenceSink, retention_tables
from candlestream.utils.time import now_ms

log = structlog.get_logger()


@dataclass(frozen=True)
class PruneResult:
    """Outcome of one retention pass, per table."""

    deleted: dict[str, int] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def total_deleted(self) -> int:
        return sum(self.deleted.values())


class RetentionPruner:
    """Periodic age-based deletion across the tick and candle tables."""

    def __init__(
        self,
        sink: PersistenceSink,
        thresholds_ms: dict[str, int],
        interval_s: float = 15 * 60.0,
        startup_delay_s: float = 60.0,
        timeout_s: float | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        known = retention_tables()
        for table, threshold in thresholds_ms.items():
            if table not in known:
                raise ValueError(
                    f"Unknown retention table {table!r}, expected one of {known}"
                )
            if threshold <= 0:
                raise ValueError(
                    f"Retention threshold for {table} must be positive, got {threshold}"
                )
        self._sink = sink
        self._thresholds_ms = dict(thresholds_ms)
        self._interval_s = interval_s
        self._startup_delay_s = startup_delay_s
        self._timeout_s = timeout_s
        self._clock = clock

    async def prune_once(self, now: int | None = None) -> PruneResult:
        """Run one pass over every table concurrently."""
        if now is None:
            now = self._clock()

        tables = list(self._thresholds_ms)
        outcomes = await asyncio.gather(
            *(self._prune_table(table, now) for table in tables),
            return_exceptions=True,
        )

        result = PruneResult()
        for table, outcome in zip(tables, outcomes):
            if isinstance(outcome, BaseException):
                result.errors[table] = f"{type(outcome).__name__}: {outcome}"
                log.warning(
                    "retention_table_failed",
                    table=table,
                    error=str(outcome),
                    error_type=type(outcome).__name__,
                )
            else:
                result.deleted[table] = outcome

        log.info(
            "retention_pass_complete",
            deleted=result.deleted,
            total_deleted=result.total_deleted,
            failed_tables=sorted(result.errors),
        )
        return result

    async def run(self) -> None:
        """Prune after the startup delay, then every interval, until cancelled."""
        log.info(
            "retention_pruner_started",
            interval_s=self._interval_s,
            startup_delay_s=self._startup_delay_s,
        )
        await asyncio.sleep(self._startup_delay_s)
        while True:
            try:
                await self.prune_once()
            except Exception:
                log.exception("retention_pass_failed")
            await asyncio.sleep(self._interval_s)

    async def _prune_table(self, table: str, now: int) -> int:
        call = self._sink.delete_older_than(table, self._thresholds_ms[table], now)
        if self._timeout_s is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout=self._timeout_s)
        except TimeoutError as e:
            raise PersistenceTimeoutError(
                f"delete on {table} exceeded {self._timeout_s}s"
            ) from e
