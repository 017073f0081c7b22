"""Database models package."""

from candlestream.models.base import Base, DecimalText, create_engine_for
from candlestream.models.candle import (
    CANDLE_MODELS,
    Candle1mModel,
    Candle5mModel,
    Candle10mModel,
    Candle30mModel,
    TickModel,
)

__all__ = [
    "CANDLE_MODELS",
    "Base",
    "Candle10mModel",
    "Candle1mModel",
    "Candle30mModel",
    "Candle5mModel",
    "DecimalText",
    "TickModel",
    "create_engine_for",
]
