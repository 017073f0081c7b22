"""Raw tick batching.

Buffers normalized trades and hands fixed-size batches to on_batch
(normally a duplicate-tolerant bulk insert via the persistence queue).
Independent of candle state.
"""

from __future__ import annotations

from collections.abc import Callable

import structlog

from candlestream.market.types import Trade

log = structlog.get_logger()


class TickBatcher:
    """Accumulates trades and flushes every batch_size of them."""

    def __init__(
        self,
        batch_size: int,
        on_batch: Callable[[list[Trade]], None],
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.batch_size = batch_size
        self._on_batch = on_batch
        self._buffer: list[Trade] = []
        self.batches_flushed = 0

    def __len__(self) -> int:
        return len(self._buffer)

    def add(self, trade: Trade) -> list[Trade] | None:
        """Buffer a trade. Returns the batch if this trade filled one."""
        self._buffer.append(trade)
        if len(self._buffer) < self.batch_size:
            return None

        batch = self._buffer[: self.batch_size]
        del self._buffer[: self.batch_size]
        self._hand_off(batch)
        return batch

    def flush(self) -> list[Trade] | None:
        """Hand off whatever is buffered as a partial batch."""
        if not self._buffer:
            return None
        batch = self._buffer
        self._buffer = []
        self._hand_off(batch)
        return batch

    def _hand_off(self, batch: list[Trade]) -> None:
        self.batches_flushed += 1
        log.debug("tick_batch_ready", size=len(batch))
        self._on_batch(batch)
