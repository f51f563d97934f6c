"""API port — abstract interface for the remote record-keeping service.

Core modules depend on this protocol, never on the HTTP dispatcher itself.
"""

from __future__ import annotations

from typing import Any, Protocol


class ApiError(Exception):
    """Base class for every failure talking to the remote service."""


class TransportError(ApiError):
    """Every candidate request for an operation failed (timeouts included)."""

    def __init__(self, operation: str, last_error: BaseException | None = None) -> None:
        self.operation = operation
        self.last_error = last_error
        detail = str(last_error) if last_error is not None else "no candidates attempted"
        super().__init__(
            f'All endpoint styles failed for op="{operation}". Last error: {detail}'
        )


class ApplicationError(ApiError):
    """The service answered at the transport level but reported a logical failure."""

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        self.message = message
        super().__init__(message or f'Service rejected op="{operation}"')


class ApiPort(Protocol):
    """Abstract remote service interface used by core modules."""

    async def call(
        self, operation: str, method: str = "GET", payload: dict | None = None
    ) -> Any: ...
