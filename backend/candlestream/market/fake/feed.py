"""FakeTradeFeed -- in-memory trade feed for testing.

Lightweight implementation of TradeFeed for unit testing the candle
service and everything downstream of the normalizer.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Mapping
from typing import Any


class FakeTradeFeed:
    """In-memory TradeFeed for testing.

    Supply canned messages at construction, or push them dynamically
    during tests via push().
    """

    def __init__(self, messages: list[Mapping[str, Any]] | None = None) -> None:
        self._queue: asyncio.Queue[Mapping[str, Any]] = asyncio.Queue()
        for message in messages or []:
            self._queue.put_nowait(message)
        self._closed = False

    def push(self, message: Mapping[str, Any]) -> None:
        self._queue.put_nowait(message)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def stream(self) -> AsyncIterator[Mapping[str, Any]]:
        while not self._closed:
            try:
                message = await asyncio.wait_for(self._queue.get(), timeout=0.05)
            except TimeoutError:
                continue
            yield message

    async def close(self) -> None:
        self._closed = True
