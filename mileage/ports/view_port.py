"""View port — abstract interface for the presentation layer.

The core pushes data and status changes through this protocol and never
touches rendering directly.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Protocol


class Resource(Enum):
    CONFIG = "config"
    WEEKS = "weeks"
    WEEK_DETAIL = "week_detail"


class Severity(Enum):
    INFO = "info"
    OK = "ok"
    WARNING = "warning"
    ERROR = "error"


class ViewPort(Protocol):
    """Receives 'data changed' and 'status' notifications from the core."""

    def data_changed(self, resource: Resource, value: Any) -> None: ...

    def status(self, message: str, severity: Severity = Severity.INFO) -> None: ...


class NullView:
    """ViewPort that ignores every notification."""

    def data_changed(self, resource: Resource, value: Any) -> None:
        pass

    def status(self, message: str, severity: Severity = Severity.INFO) -> None:
        pass
