"""Engine layer: candle aggregation, idle sweep, retention and tick batching."""

from candlestream.engine.candle_aggregator import CandleAggregator
from candlestream.engine.retention import PruneResult, RetentionPruner
from candlestream.engine.service import CandleService
from candlestream.engine.state import CandleStateStore, TimeframeState
from candlestream.engine.sweeper import IdleSweeper
from candlestream.engine.tick_batcher import TickBatcher

__all__ = [
    "CandleAggregator",
    "CandleService",
    "CandleStateStore",
    "IdleSweeper",
    "PruneResult",
    "RetentionPruner",
    "TickBatcher",
    "TimeframeState",
]
