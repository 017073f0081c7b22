"""FastAPI application serving stored candles.

HTTP Endpoints:
- GET /health          - Health check
- GET /api/v1/candles  - Candles by asset and timeframe (ts), optional time range
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from candlestream.market.errors import QueryValidationError
from candlestream.persistence.sink import PersistenceSink
from candlestream.query.service import CandleQueryService

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    return {"message": "Health Check!"}


@router.get("/api/v1/candles", response_model=None)
async def get_candles(
    request: Request,
    asset: str | None = None,
    ts: str | None = None,
    start_time: str | None = Query(default=None, alias="startTime"),
    end_time: str | None = Query(default=None, alias="endTime"),
) -> dict[str, Any] | JSONResponse:
    service: CandleQueryService = request.app.state.query_service
    try:
        result = await service.get_candles(asset, ts, start_time, end_time)
    except QueryValidationError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except Exception:
        log.exception("candle_query_failed", asset=asset, timeframe=ts)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "message": "Failed to fetch candle data",
            },
        )

    return {
        "success": True,
        "data": result.candles,
        "count": result.count,
        "timeframe": result.timeframe.value,
        "asset": result.asset,
    }


def create_app(sink: PersistenceSink) -> FastAPI:
    """Build the query API over the given sink."""
    app = FastAPI(title="candle-stream", docs_url=None, redoc_url=None)
    app.state.query_service = CandleQueryService(sink)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["GET"])
    app.include_router(router)
    return app
