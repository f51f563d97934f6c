"""Storage port — abstract interface for flat key/value persistence.

The cache store depends on this protocol, never on a specific backend.
Implementations may be unavailable, full, or hold corrupt data.
"""

from __future__ import annotations

from typing import Protocol


class CacheError(Exception):
    """Raised when a key/value backend cannot read or write."""


class KeyValueStore(Protocol):
    """String-keyed store with get/set/remove and no transactions."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...
