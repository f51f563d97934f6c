"""Key/value store factory — persistent SQLite when possible, memory otherwise."""

from __future__ import annotations

import logging

from mileage.adapters.memory_store import MemoryKeyValueStore
from mileage.adapters.sqlite_store import SQLiteKeyValueStore
from mileage.ports.storage_port import CacheError, KeyValueStore

logger = logging.getLogger(__name__)


def create_key_value_store(db_path: str | None = None) -> KeyValueStore:
    """Return a SQLite store at db_path (default CACHE_DATABASE_PATH).

    An unusable path (unwritable directory, corrupt file) degrades to an
    in-memory store so the client still runs, just without persistence.
    """
    try:
        return SQLiteKeyValueStore(db_path=db_path)
    except (CacheError, OSError) as exc:
        logger.warning("Persistent cache unavailable, using memory only: %s", exc)
        return MemoryKeyValueStore()
