"""Trade normalizer -- raw feed message to canonical Trade.

Stateless. Accepts three shapes:
- canonical decoded trade: {tradeId, asset, price, quantity, eventTime}
- Binance combined-stream frame: {"stream": "...", "data": {...}}
- bare Binance trade payload: {"e": "trade", "t", "s", "p", "q", "T"}

Price and quantity must arrive as text and are passed through unparsed;
numeric validation happens per timeframe update inside the aggregator.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from candlestream.market.errors import MalformedTradeError
from candlestream.market.types import Trade

# Binance single-letter keys -> canonical names
_BINANCE_FIELDS = {
    "t": "tradeId",
    "s": "asset",
    "p": "price",
    "q": "quantity",
    "T": "eventTime",
}


def decode_frame(raw: str | bytes) -> Mapping[str, Any]:
    """Decode one websocket text frame into a JSON object."""
    try:
        decoded = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedTradeError("frame", f"invalid JSON: {e}") from e
    if not isinstance(decoded, dict):
        raise MalformedTradeError(
            "frame", f"expected JSON object, got {type(decoded).__name__}"
        )
    return decoded


def normalize(message: Mapping[str, Any]) -> Trade | None:
    """Convert a decoded feed message into a Trade.

    Returns None for frames that carry no trade (subscription acks,
    other event types). Raises MalformedTradeError when a trade frame is
    missing fields or carries fields of the wrong type.
    """
    payload = _unwrap(message)
    if payload is None:
        return None

    trade_id = _require(payload, "tradeId")
    asset = _require(payload, "asset")
    event_time = _require(payload, "eventTime")
    price = _require(payload, "price")
    quantity = _require(payload, "quantity")

    if isinstance(trade_id, bool) or not isinstance(trade_id, int):
        raise MalformedTradeError("tradeId", f"expected integer, got {trade_id!r}")
    if not isinstance(asset, str) or not asset.strip():
        raise MalformedTradeError("asset", f"expected symbol, got {asset!r}")
    if isinstance(event_time, bool) or not isinstance(event_time, int):
        raise MalformedTradeError(
            "eventTime", f"expected integer milliseconds, got {event_time!r}"
        )
    if event_time < 0:
        raise MalformedTradeError("eventTime", f"negative time: {event_time}")
    for field, value in (("price", price), ("quantity", quantity)):
        if not isinstance(value, str):
            raise MalformedTradeError(
                field, f"expected decimal text, got {type(value).__name__}"
            )

    return Trade(
        trade_id=trade_id,
        asset=asset.strip().upper(),
        price=price,
        quantity=quantity,
        event_time=event_time,
    )


def _unwrap(message: Mapping[str, Any]) -> Mapping[str, Any] | None:
    """Return the canonical-keyed trade payload, or None for non-trades."""
    if "data" in message and isinstance(message["data"], Mapping):
        message = message["data"]

    if "tradeId" in message:
        return message

    if message.get("e") == "trade":
        return {
            canonical: message[key]
            for key, canonical in _BINANCE_FIELDS.items()
            if key in message
        }

    return None


def _require(payload: Mapping[str, Any], field: str) -> Any:
    value = payload.get(field)
    if value is None:
        raise MalformedTradeError(field, "missing")
    return value
