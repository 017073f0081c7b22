"""Candle query service -- validated, read-only projection of stored candles.

Performs no aggregation. Parameters arrive as raw strings from HTTP and
are validated here so every transport reports the same messages.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from candlestream.market.errors import QueryValidationError
from candlestream.market.types import StoredCandle, Timeframe
from candlestream.persistence.sink import PersistenceSink

VALID_TIMEFRAMES = tuple(tf.value for tf in Timeframe)


@dataclass(frozen=True)
class CandleQueryResult:
    """Projected candles for one asset and timeframe."""

    asset: str
    timeframe: Timeframe
    candles: list[dict[str, Any]]

    @property
    def count(self) -> int:
        return len(self.candles)


def project(candle: StoredCandle) -> dict[str, Any]:
    """Client-facing shape of a stored candle."""
    return {
        "open": str(candle.open),
        "high": str(candle.high),
        "low": str(candle.low),
        "close": str(candle.close),
        "windowStart": candle.window_start,
        "windowEnd": candle.window_end,
        "asset": candle.asset,
    }


def parse_timeframe(value: str | None) -> Timeframe:
    if not value:
        raise QueryValidationError(
            "Missing required parameters: asset and ts are required"
        )
    try:
        return Timeframe(value)
    except ValueError as e:
        raise QueryValidationError(
            f"Invalid timeframe. Must be one of: {', '.join(VALID_TIMEFRAMES)}"
        ) from e


def parse_time(name: str, value: str | int | None) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, int):
        result = value
    else:
        try:
            result = int(value)
        except ValueError as e:
            raise QueryValidationError(
                f"{name} must be an integer (milliseconds since epoch), got {value!r}"
            ) from e
    if result < 0:
        raise QueryValidationError(f"{name} must not be negative, got {result}")
    return result


class CandleQueryService:
    """Reads candles for clients through the persistence sink."""

    def __init__(self, sink: PersistenceSink) -> None:
        self._sink = sink

    async def get_candles(
        self,
        asset: str | None,
        timeframe: str | None,
        start_time: str | int | None = None,
        end_time: str | int | None = None,
    ) -> CandleQueryResult:
        """Candles for asset, ascending by window start.

        Raises:
            QueryValidationError: On missing or malformed parameters.
        """
        if not asset or not asset.strip():
            raise QueryValidationError(
                "Missing required parameters: asset and ts are required"
            )
        tf = parse_timeframe(timeframe)
        start = parse_time("startTime", start_time)
        end = parse_time("endTime", end_time)
        if start is not None and end is not None and start > end:
            raise QueryValidationError(
                f"startTime ({start}) must not be after endTime ({end})"
            )

        normalized_asset = asset.strip().upper()
        rows = await self._sink.query_candles(tf, normalized_asset, start, end)
        return CandleQueryResult(
            asset=normalized_asset,
            timeframe=tf,
            candles=[project(row) for row in rows],
        )
