"""Persistence layer: sink protocol, implementations, and the task queue."""

from candlestream.persistence.memory import InMemoryPersistenceSink
from candlestream.persistence.queue import PersistenceQueue
from candlestream.persistence.sink import (
    TICK_TABLE,
    PersistenceSink,
    retention_tables,
)
from candlestream.persistence.sql_sink import SqlPersistenceSink

__all__ = [
    "TICK_TABLE",
    "InMemoryPersistenceSink",
    "PersistenceQueue",
    "PersistenceSink",
    "SqlPersistenceSink",
    "retention_tables",
]
