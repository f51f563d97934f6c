"""
Mileage Tracker — SQLite key/value store.

Implements KeyValueStore on a single SQLite table so cached payloads
survive process restarts. Every sqlite3 failure surfaces as CacheError.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from mileage.ports.storage_port import CacheError

logger = logging.getLogger(__name__)


class SQLiteKeyValueStore:
    """SQLite-backed implementation of KeyValueStore."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from mileage.config import settings
            db_path = settings.CACHE_DATABASE_PATH

        self._db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path)

    def _init_db(self) -> None:
        """Create the kv table if it doesn't exist."""
        try:
            with self._connect() as conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS kv (
                        key   TEXT PRIMARY KEY,
                        value TEXT NOT NULL
                    )
                """)
        except sqlite3.Error as exc:
            raise CacheError(f"Cannot initialize cache at {self._db_path}: {exc}") from exc
        logger.debug("Cache table initialized at %s", self._db_path)

    def get(self, key: str) -> str | None:
        try:
            with self._connect() as conn:
                row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            raise CacheError(str(exc)) from exc
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    "INSERT INTO kv (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    (key, value),
                )
        except sqlite3.Error as exc:
            raise CacheError(str(exc)) from exc

    def remove(self, key: str) -> None:
        try:
            with self._connect() as conn:
                conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        except sqlite3.Error as exc:
            raise CacheError(str(exc)) from exc
