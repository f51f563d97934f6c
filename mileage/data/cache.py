"""
Mileage Tracker — Local Cache Store.

Wraps a KeyValueStore with per-entry write timestamps. The cache is an
optimization only: every read or write failure is logged and degrades
to a miss, never an exception.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable

from mileage.data.models import CacheRecord
from mileage.ports.storage_port import CacheError, KeyValueStore

logger = logging.getLogger(__name__)

CONFIG_KEY = "mt_cache_config_v1"
WEEKS_KEY = "mt_cache_weeks_v1"
WEEK_DETAIL_PREFIX = "mt_cache_week_details_v1_"


def week_detail_key(week_id: str, person: str) -> str:
    """Namespace week details by (week, person) so people never share a record."""
    return f"{WEEK_DETAIL_PREFIX}{week_id}_{person}"


class CacheStore:
    """Timestamped JSON records on top of a flat key/value store."""

    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    def write(self, key: str, value: Any) -> None:
        """Persist {timestamp, value} under key; no-op on any storage failure."""
        try:
            raw = json.dumps({"ts": self._clock(), "data": value})
            self._store.set(key, raw)
        except (CacheError, OSError, TypeError, ValueError) as exc:
            logger.debug("Cache write skipped for %s: %s", key, exc)

    def read(self, key: str) -> CacheRecord | None:
        """Return the stored record, or None when absent or unreadable."""
        try:
            raw = self._store.get(key)
            if not raw:
                return None
            obj = json.loads(raw)
            if not isinstance(obj, dict) or "data" not in obj:
                return None
            return CacheRecord(timestamp=float(obj.get("ts") or 0), value=obj["data"])
        except (CacheError, OSError, TypeError, ValueError) as exc:
            logger.debug("Cache read treated as miss for %s: %s", key, exc)
            return None

    def is_fresh(self, record: CacheRecord | None, threshold_seconds: float) -> bool:
        return record is not None and record.is_fresh(self._clock(), threshold_seconds)
