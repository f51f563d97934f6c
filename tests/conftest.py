"""Shared test fixtures and configuration.

Sets up fake environment variables so mileage.config doesn't sys.exit(),
and provides common fixtures like an in-memory cache with a fake clock.
"""

import os

# Patch env vars BEFORE any mileage imports
os.environ.setdefault("API_BASE_URL", "https://api.test/")
os.environ.setdefault("CACHE_DATABASE_PATH", ":memory:")
os.environ.setdefault("REQUEST_TIMEOUT_SECONDS", "1")
os.environ.setdefault("SOFT_REFRESH_AFTER_SECONDS", "20")

import pytest
from unittest.mock import MagicMock


class FakeClock:
    """Callable clock the tests can move forward by hand."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store():
    from mileage.adapters.memory_store import MemoryKeyValueStore
    return MemoryKeyValueStore()


@pytest.fixture
def cache(memory_store, clock):
    """Return a CacheStore over an in-memory store and a fake clock."""
    from mileage.data.cache import CacheStore
    return CacheStore(memory_store, clock=clock)


@pytest.fixture
def view():
    """A ViewPort double that records every notification."""
    return MagicMock()


