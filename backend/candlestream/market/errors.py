"""Error hierarchy for the candle pipeline.

All pipeline exceptions inherit from CandleStreamError, enabling clean
exception handling at component boundaries.
"""

from __future__ import annotations


class CandleStreamError(Exception):
    """Base exception for all candle pipeline errors."""


class MalformedTradeError(CandleStreamError):
    """Trade message with a missing, unparsable or non-finite field.

    Stores the offending field name so callers can count rejections.
    """

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"Malformed trade field '{field}': {message}")


class PersistenceError(CandleStreamError):
    """Storage call failed."""


class PersistenceTimeoutError(PersistenceError):
    """Storage call did not complete within the configured timeout."""


class QueryValidationError(CandleStreamError):
    """Bad or missing query parameters. Surfaced to clients as HTTP 400."""
