"""Market data database models.

Tables: tick, candle_1m, candle_5m, candle_10m, candle_30m

Candle tables share one column layout; identity is (asset, window_start)
within each table, enforced by a unique constraint so upserts stay
idempotent.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from candlestream.market.types import Timeframe
from candlestream.models.base import Base, DecimalText


class TickModel(Base):
    """Raw trades, append-only. Primary key (asset, trade_id) drops redeliveries."""

    __tablename__ = "tick"

    asset: Mapped[str] = mapped_column(String, primary_key=True)
    trade_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    price: Mapped[str] = mapped_column(String, nullable=False)
    quantity: Mapped[str] = mapped_column(String, nullable=False)
    event_time: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (Index("ix_tick_event_time", "event_time"),)


class CandleColumns:
    """Column layout shared by every per-timeframe candle table."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    asset: Mapped[str] = mapped_column(String, nullable=False)
    window_start: Mapped[int] = mapped_column(BigInteger, nullable=False)
    window_end: Mapped[int] = mapped_column(BigInteger, nullable=False)
    open: Mapped[DecimalText] = mapped_column(DecimalText, nullable=False)
    high: Mapped[DecimalText] = mapped_column(DecimalText, nullable=False)
    low: Mapped[DecimalText] = mapped_column(DecimalText, nullable=False)
    close: Mapped[DecimalText] = mapped_column(DecimalText, nullable=False)
    volume: Mapped[DecimalText] = mapped_column(
        DecimalText, nullable=False, server_default="0"
    )
    trade_count: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default="0"
    )
    last_trade_id: Mapped[int] = mapped_column(BigInteger, nullable=False)


class Candle1mModel(CandleColumns, Base):
    """Finalized 1-minute candles."""

    __tablename__ = "candle_1m"
    __table_args__ = (
        UniqueConstraint("asset", "window_start", name="uq_candle_1m_asset_window"),
        Index("ix_candle_1m_window_start", "window_start"),
    )


class Candle5mModel(CandleColumns, Base):
    """Finalized 5-minute candles."""

    __tablename__ = "candle_5m"
    __table_args__ = (
        UniqueConstraint("asset", "window_start", name="uq_candle_5m_asset_window"),
        Index("ix_candle_5m_window_start", "window_start"),
    )


class Candle10mModel(CandleColumns, Base):
    """Finalized 10-minute candles."""

    __tablename__ = "candle_10m"
    __table_args__ = (
        UniqueConstraint("asset", "window_start", name="uq_candle_10m_asset_window"),
        Index("ix_candle_10m_window_start", "window_start"),
    )


class Candle30mModel(CandleColumns, Base):
    """Finalized 30-minute candles."""

    __tablename__ = "candle_30m"
    __table_args__ = (
        UniqueConstraint("asset", "window_start", name="uq_candle_30m_asset_window"),
        Index("ix_candle_30m_window_start", "window_start"),
    )


CandleModel = Candle1mModel | Candle5mModel | Candle10mModel | Candle30mModel

CANDLE_MODELS: dict[Timeframe, type[CandleModel]] = {
    Timeframe.ONE_MINUTE: Candle1mModel,
    Timeframe.FIVE_MINUTES: Candle5mModel,
    Timeframe.TEN_MINUTES: Candle10mModel,
    Timeframe.THIRTY_MINUTES: Candle30mModel,
}
