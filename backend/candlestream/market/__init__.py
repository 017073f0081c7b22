"""Market abstraction layer.

Re-exports all public types, protocols, and errors for convenient imports:
    from candlestream.market import Trade, Timeframe, TradeFeed, CandleStreamError
"""

from candlestream.market.errors import (
    CandleStreamError,
    MalformedTradeError,
    PersistenceError,
    PersistenceTimeoutError,
    QueryValidationError,
)
from candlestream.market.feed import TradeFeed
from candlestream.market.normalizer import decode_frame, normalize
from candlestream.market.types import (
    ALL_TIMEFRAMES,
    CandleKey,
    FinalizedCandle,
    FinalizeReason,
    InProgressCandle,
    StoredCandle,
    Timeframe,
    Trade,
)

__all__ = [
    "ALL_TIMEFRAMES",
    "CandleKey",
    "CandleStreamError",
    "FinalizeReason",
    "FinalizedCandle",
    "InProgressCandle",
    "MalformedTradeError",
    "PersistenceError",
    "PersistenceTimeoutError",
    "QueryValidationError",
    "StoredCandle",
    "Timeframe",
    "Trade",
    "TradeFeed",
    "decode_frame",
    "normalize",
]
