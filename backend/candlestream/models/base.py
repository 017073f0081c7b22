"""SQLAlchemy base, DecimalText type, and SQLite pragmas."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import String, TypeDecorator

DEFAULT_BUSY_TIMEOUT_MS = 5000


class DecimalText(TypeDecorator[Decimal]):
    """Store Python Decimal as TEXT in SQLite for exact precision.

    All prices, quantities and volumes must use this type to avoid
    floating-point drift across repeated high/low comparisons.
    """

    impl = String
    cache_ok = True

    def process_bind_param(
        self,
        value: Decimal | None,
        dialect: Any,
    ) -> str | None:
        if value is None:
            return None
        return str(value)

    def process_result_value(
        self,
        value: str | None,
        dialect: Any,
    ) -> Decimal | None:
        if value is None:
            return None
        return Decimal(value)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def set_sqlite_pragmas(
    dbapi_connection: Any,
    connection_record: Any,
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
) -> None:
    """Set SQLite pragmas on every new connection.

    SQLite pragmas are per-connection, not per-database, so they must be
    set every time.
    """
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute(f"PRAGMA busy_timeout={busy_timeout_ms}")
    cursor.close()


def register_engine_events(
    engine: Engine,
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
) -> None:
    """Register SQLite pragma listener on a sync engine."""

    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        set_sqlite_pragmas(dbapi_connection, connection_record, busy_timeout_ms)

    event.listen(engine, "connect", _on_connect)


def create_engine_for(
    url: str,
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
) -> AsyncEngine:
    """Create an async engine with pragmas registered on its sync core."""
    engine = create_async_engine(url, echo=False)
    if url.startswith("sqlite"):
        register_engine_events(engine.sync_engine, busy_timeout_ms)
    return engine
