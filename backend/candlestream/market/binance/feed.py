"""BinanceTradeFeed -- live trades from the Binance combined stream.

Reconnects forever on drop. A reconnect leaves a silent gap in the trade
stream; the configured gap policy decides how loudly that is reported.
Nothing is backfilled.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Mapping
from typing import Any
import structlog
import websockets
from websockets.exceptions import WebSocketException

from candlestream.config import FeedConfig
from candlestream.market.errors import MalformedTradeError
from candlestream.market.normalizer import decode_frame
from candlestream.utils.logging import new_feed_session_id, set_feed_session_id
from candlestream.utils.time import now_ms

logger = structlog.get_logger()


def stream_url(config: FeedConfig) -> str:
    """Combined-stream URL for all configured symbols."""
    streams = "/".join(f"{symbol.lower()}@trade" for symbol in config.symbols)
    return f"{config.ws_base_url}?streams={streams}"


class BinanceTradeFeed:
    """TradeFeed implementation over the Binance websocket API."""

    def __init__(self, config: FeedConfig) -> None:
        self._config = config
        self._url = stream_url(config)
        self._closed = asyncio.Event()
        self._socket: Any = None
        self._last_message_ms: int | None = None
        self.reconnects = 0

    async def stream(self) -> AsyncIterator[Mapping[str, Any]]:
        """Yield decoded messages, reconnecting on every drop until closed."""
        while not self._closed.is_set():
            new_feed_session_id()
            try:
                async with websockets.connect(
                    self._url,
                    ping_interval=self._config.ping_interval_s,
                    ping_timeout=self._config.ping_timeout_s,
                ) as socket:
                    self._socket = socket
                    self._report_connected()
                    async for raw in socket:
                        self._last_message_ms = now_ms()
                        try:
                            yield decode_frame(raw)
                        except MalformedTradeError as e:
                            logger.warning("feed_frame_malformed", error=str(e))
                logger.info("feed_closed_by_server", url=self._url)
            except (WebSocketException, OSError, TimeoutError) as e:
                logger.warning(
                    "feed_connection_lost",
                    url=self._url,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            finally:
                self._socket = None
                set_feed_session_id("")

            if self._closed.is_set():
                break
            self.reconnects += 1
            await self._backoff_sleep()

    async def close(self) -> None:
        """Stop reconnecting and close the active socket."""
        self._closed.set()
        if self._socket is not None:
            await self._socket.close()

    def _report_connected(self) -> None:
        if self._last_message_ms is None:
            logger.info("feed_connected", url=self._url)
            return

        fields = {
            "url": self._url,
            "last_message_ms": self._last_message_ms,
            "reconnected_ms": now_ms(),
            "reconnects": self.reconnects,
        }
        if self._config.gap_policy == "warn":
            logger.warning("feed_gap_detected", **fields)
        else:
            logger.info("feed_reconnected", **fields)

    async def _backoff_sleep(self) -> None:
        """Reconnect backoff; returns early when the feed is closed."""
        try:
            await asyncio.wait_for(
                self._closed.wait(),
                timeout=self._config.reconnect_delay_s,
            )
        except TimeoutError:
            pass
