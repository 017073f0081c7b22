"""TradeFeed protocol -- abstract interface for upstream trade sources.

All feed implementations (Binance websocket, fake) must satisfy this protocol.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class TradeFeed(Protocol):
    """Async source of decoded feed messages.

    ``stream()`` yields decoded JSON objects in arrival order and keeps
    going across reconnects until ``close()`` is called. Messages are not
    normalized; callers pass them through the normalizer.
    """

    def stream(self) -> AsyncIterator[Mapping[str, Any]]:
        """Yield decoded messages until closed."""
        ...

    async def close(self) -> None:
        """Stop streaming and release the connection."""
        ...
