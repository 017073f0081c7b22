"""Persistence queue -- tracked, time-bounded storage calls.

Storage calls never block ingestion. Each one runs as its own task under a
timeout; a done callback logs the outcome. Failures are counted and logged,
never retried and never raised back to the caller. At shutdown the set of
in-flight tasks is drained best-effort.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

import structlog

from candlestream.market.errors import PersistenceTimeoutError

log = structlog.get_logger()


class PersistenceQueue:
    """Owns every in-flight persistence task."""

    def __init__(self, timeout_s: float) -> None:
        self._timeout_s = timeout_s
        self._tasks: set[asyncio.Task[Any]] = set()
        self.succeeded = 0
        self.failed = 0

    @property
    def in_flight(self) -> frozenset[asyncio.Task[Any]]:
        """Snapshot of tasks still running."""
        return frozenset(self._tasks)

    def submit(
        self,
        operation: str,
        call: Coroutine[Any, Any, Any],
        **context: Any,
    ) -> asyncio.Task[Any]:
        """Schedule a storage call. Must be called from the event loop thread."""
        task = asyncio.get_running_loop().create_task(
            self._run(operation, call),
            name=f"persist:{operation}",
        )
        self._tasks.add(task)
        task.add_done_callback(
            lambda t: self._on_done(t, operation, context),
        )
        return task

    async def drain(self, timeout_s: float) -> int:
        """Wait for in-flight work, then cancel stragglers.

        Returns the number of tasks cancelled because they outlived timeout_s.
        """
        pending = set(self._tasks)
        if not pending:
            return 0

        log.info("persistence_drain_started", in_flight=len(pending))
        _, still_pending = await asyncio.wait(pending, timeout=timeout_s)
        for task in still_pending:
            task.cancel()
        if still_pending:
            await asyncio.gather(*still_pending, return_exceptions=True)
            log.warning("persistence_drain_abandoned", cancelled=len(still_pending))
        log.info(
            "persistence_drain_complete",
            succeeded=self.succeeded,
            failed=self.failed,
        )
        return len(still_pending)

    async def _run(self, operation: str, call: Coroutine[Any, Any, Any]) -> Any:
        try:
            return await asyncio.wait_for(call, timeout=self._timeout_s)
        except TimeoutError as e:
            raise PersistenceTimeoutError(
                f"{operation} exceeded {self._timeout_s}s"
            ) from e

    def _on_done(
        self,
        task: asyncio.Task[Any],
        operation: str,
        context: dict[str, Any],
    ) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            log.warning("persistence_cancelled", operation=operation, **context)
            return

        exc = task.exception()
        if exc is None:
            self.succeeded += 1
            return

        self.failed += 1
        log.error(
            "persistence_failed",
            operation=operation,
            error=str(exc),
            error_type=type(exc).__name__,
            **context,
        )
