"""
Event store layer.

The metric engine reads through the narrow :class:`EventStore` interface;
DuckDB is the bundled backend.
"""

from functools import lru_cache

from engagement.config import get_settings

from .base import TABLE_COLUMNS, EventStore, StorageError
from .duckdb_storage import DuckDBEventStore


@lru_cache
def get_event_store() -> EventStore:
    """
    Get cached event store instance (singleton).

    Returns the backend selected by configuration. Currently supports DuckDB.

    Returns:
        EventStore implementation instance
    """
    settings = get_settings()
    if settings.db_type != "duckdb":
        raise StorageError(f"Unsupported db_type: {settings.db_type}")
    return DuckDBEventStore(db_path=settings.db_path, threads=settings.db_threads)


__all__ = [
    "TABLE_COLUMNS",
    "EventStore",
    "StorageError",
    "DuckDBEventStore",
    "get_event_store",
]
