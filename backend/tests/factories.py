"""Shared test factories for creating domain objects.

Provides make_trade(), make_finalized_candle(), make_stored_candle() and
binance_frame() with sensible defaults so tests can focus on the values
they care about.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from candlestream.market.types import (
    FinalizedCandle,
    FinalizeReason,
    StoredCandle,
    Timeframe,
    Trade,
)

# Default event time: 2026-02-10 15:00:00 UTC, aligned to every timeframe
DEFAULT_EVENT_TIME = 1_770_735_600_000

MINUTE_MS = 60_000
DAY_MS = 86_400_000


def make_trade(
    *,
    trade_id: int = 1,
    asset: str = "BTCUSDT",
    price: str = "100.00",
    quantity: str = "0.5",
    event_time: int = DEFAULT_EVENT_TIME,
) -> Trade:
    """Create a Trade with sensible defaults."""
    return Trade(
        trade_id=trade_id,
        asset=asset,
        price=price,
        quantity=quantity,
        event_time=event_time,
    )


def make_finalized_candle(
    *,
    asset: str = "BTCUSDT",
    timeframe: Timeframe = Timeframe.ONE_MINUTE,
    window_start: int = DEFAULT_EVENT_TIME,
    open: Decimal = Decimal("100.00"),
    high: Decimal = Decimal("101.00"),
    low: Decimal = Decimal("99.00"),
    close: Decimal = Decimal("100.50"),
    volume: Decimal = Decimal("3.5"),
    trade_count: int = 7,
    last_trade_id: int = 42,
    reason: FinalizeReason = FinalizeReason.CLOSING_TRADE,
) -> FinalizedCandle:
    """Create a FinalizedCandle with sensible defaults."""
    return FinalizedCandle(
        asset=asset,
        timeframe=timeframe,
        window_start=window_start,
        window_end=timeframe.window_end(window_start),
        open=open,
        high=high,
        low=low,
        close=close,
        volume=volume,
        trade_count=trade_count,
        last_trade_id=last_trade_id,
        reason=reason,
    )


def make_stored_candle(**kwargs: Any) -> StoredCandle:
    """Create a StoredCandle; accepts the same keywords as make_finalized_candle."""
    candle = make_finalized_candle(**kwargs)
    return StoredCandle(
        asset=candle.asset,
        timeframe=candle.timeframe,
        window_start=candle.window_start,
        window_end=candle.window_end,
        open=candle.open,
        high=candle.high,
        low=candle.low,
        close=candle.close,
        volume=candle.volume,
        trade_count=candle.trade_count,
        last_trade_id=candle.last_trade_id,
    )


def binance_frame(
    *,
    trade_id: int = 1,
    symbol: str = "BTCUSDT",
    price: str = "100.00",
    quantity: str = "0.5",
    trade_time: int = DEFAULT_EVENT_TIME,
) -> dict[str, Any]:
    """Create a Binance combined-stream trade frame."""
    return {
        "stream": f"{symbol.lower()}@trade",
        "data": {
            "e": "trade",
            "E": trade_time + 3,
            "s": symbol,
            "t": trade_id,
            "p": price,
            "q": quantity,
            "T": trade_time,
            "m": False,
            "M": True,
        },
    }
