"""Query layer: read-only candle projection and its HTTP surface."""

from candlestream.query.service import CandleQueryResult, CandleQueryService

__all__ = ["CandleQueryResult", "CandleQueryService"]
