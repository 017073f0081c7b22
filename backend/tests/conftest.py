"""Shared test fixtures for candle-stream."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from candlestream.engine.state import CandleStateStore
from candlestream.market.types import ALL_TIMEFRAMES
from candlestream.models.base import Base
from candlestream.persistence.memory import InMemoryPersistenceSink


@pytest.fixture
def store() -> CandleStateStore:
    return CandleStateStore(ALL_TIMEFRAMES)


@pytest.fixture
def memory_sink() -> InMemoryPersistenceSink:
    return InMemoryPersistenceSink()


@pytest.fixture
async def db_session_factory() -> async_sessionmaker[AsyncSession]:
    """Create in-memory async SQLite with all tables."""
    import candlestream.models.candle  # noqa: F401

    engine = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return async_sessionmaker(engine, expire_on_commit=False)
