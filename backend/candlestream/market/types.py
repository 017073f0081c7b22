"""Market domain types shared across the candle pipeline.

Frozen dataclasses for value objects, mutable dataclasses for state objects.
All prices and quantities use Decimal (never float). Times are integer
milliseconds since the epoch, as assigned by the feed.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

_MINUTE_MS = 60_000


class Timeframe(str, Enum):
    """Candle resolutions. Adding a member needs no aggregation changes."""

    ONE_MINUTE = "1m"
    FIVE_MINUTES = "5m"
    TEN_MINUTES = "10m"
    THIRTY_MINUTES = "30m"

    @property
    def duration_ms(self) -> int:
        return _DURATIONS_MS[self]

    @property
    def table_name(self) -> str:
        """Name of the persisted candle table for this resolution."""
        return f"candle_{self.value}"

    def window_start(self, event_time: int) -> int:
        """Start of the half-open window containing event_time."""
        return (event_time // self.duration_ms) * self.duration_ms

    def window_end(self, window_start: int) -> int:
        """Last millisecond (inclusive) of the window starting at window_start."""
        return window_start + self.duration_ms - 1


_DURATIONS_MS: dict[Timeframe, int] = {
    Timeframe.ONE_MINUTE: _MINUTE_MS,
    Timeframe.FIVE_MINUTES: 5 * _MINUTE_MS,
    Timeframe.TEN_MINUTES: 10 * _MINUTE_MS,
    Timeframe.THIRTY_MINUTES: 30 * _MINUTE_MS,
}

ALL_TIMEFRAMES: tuple[Timeframe, ...] = tuple(Timeframe)


class FinalizeReason(str, Enum):
    """Why a candle was closed."""

    CLOSING_TRADE = "closing_trade"
    IDLE_SWEEP = "idle_sweep"


# --- Value Objects (frozen) ---


@dataclass(frozen=True)
class Trade:
    """One executed trade as delivered by the feed.

    price and quantity are kept as the feed's decimal text; they are parsed
    per timeframe update so a malformed value cannot poison other state.
    """

    trade_id: int
    asset: str
    price: str
    quantity: str
    event_time: int


@dataclass(frozen=True)
class CandleKey:
    """Identity of one candle instance."""

    asset: str
    timeframe: Timeframe
    window_start: int

    @classmethod
    def for_trade(cls, trade: Trade, timeframe: Timeframe) -> CandleKey:
        return cls(
            asset=trade.asset,
            timeframe=timeframe,
            window_start=timeframe.window_start(trade.event_time),
        )

    @property
    def window_end(self) -> int:
        return self.timeframe.window_end(self.window_start)


@dataclass(frozen=True)
class FinalizedCandle:
    """Immutable snapshot of a closed candle, handed to persistence."""

    asset: str
    timeframe: Timeframe
    window_start: int
    window_end: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal
    trade_count: int
    last_trade_id: int
    reason: FinalizeReason = FinalizeReason.CLOSING_TRADE


@dataclass(frozen=True)
class StoredCandle:
    """Candle row as read back from persistence."""

    asset: str
    timeframe: Timeframe
    window_start: int
    window_end: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal
    trade_count: int
    last_trade_id: int


# --- State Objects (mutable) ---


@dataclass
class InProgressCandle:
    """Open candle state. Lives only in memory until finalized."""

    key: CandleKey
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal
    earliest_seen_time: int
    latest_seen_time: int
    last_trade_id: int
    trade_count: int = 1

    @classmethod
    def first(
        cls,
        key: CandleKey,
        trade: Trade,
        price: Decimal,
        quantity: Decimal,
    ) -> InProgressCandle:
        return cls(
            key=key,
            open=price,
            high=price,
            low=price,
            close=price,
            volume=quantity,
            earliest_seen_time=trade.event_time,
            latest_seen_time=trade.event_time,
            last_trade_id=trade.trade_id,
        )

    @property
    def window_start(self) -> int:
        return self.key.window_start

    @property
    def window_end(self) -> int:
        return self.key.window_end

    def apply(self, trade: Trade, price: Decimal, quantity: Decimal) -> None:
        """Fold one trade into the candle.

        open and close follow event time, not arrival order: a trade older
        than anything seen becomes the open, one at or after the newest seen
        becomes the close. Equal times resolve to the later arrival.
        """
        if trade.event_time < self.earliest_seen_time:
            self.open = price
            self.earliest_seen_time = trade.event_time
        if trade.event_time >= self.latest_seen_time:
            self.close = price
            self.latest_seen_time = trade.event_time
        self.high = max(self.high, price)
        self.low = min(self.low, price)
        self.volume += quantity
        self.last_trade_id = trade.trade_id
        self.trade_count += 1

    def snapshot(
        self,
        reason: FinalizeReason = FinalizeReason.CLOSING_TRADE,
    ) -> FinalizedCandle:
        return FinalizedCandle(
            asset=self.key.asset,
            timeframe=self.key.timeframe,
            window_start=self.window_start,
            window_end=self.window_end,
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.close,
            volume=self.volume,
            trade_count=self.trade_count,
            last_trade_id=self.last_trade_id,
            reason=reason,
        )
