"""Shared market utilities."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from candlestream.market.errors import MalformedTradeError


def to_decimal(value: str, field: str = "price") -> Decimal:
    """Parse feed decimal text into a finite Decimal.

    Raises MalformedTradeError for non-text, unparsable, NaN or infinite
    values. Floats are rejected outright: the feed transports decimals as
    text and a float here means precision is already lost.
    """
    if not isinstance(value, str):
        raise MalformedTradeError(
            field, f"expected decimal text, got {type(value).__name__}"
        )
    try:
        result = Decimal(value.strip())
    except InvalidOperation as e:
        raise MalformedTradeError(field, f"not a decimal: {value!r}") from e
    if not result.is_finite():
        raise MalformedTradeError(field, f"not finite: {value!r}")
    return result
