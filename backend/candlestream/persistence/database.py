"""Engine and session factory construction for the SQL sink."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from candlestream.config import AppConfig
from candlestream.models.base import Base, create_engine_for


def open_database(
    config: AppConfig,
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Create the async engine and session factory for config.db_path."""
    Path(config.db_path).parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine_for(config.db_url, config.db_busy_timeout_ms)
    return engine, async_sessionmaker(engine, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    """Create any missing tables. Alembic migrations remain the upgrade path."""
    import candlestream.models.candle  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
