"""
Mileage Tracker — Optimistic Mutation Coordinator.

add_entry shows the new entry before the server has seen it:

1. validate input (nothing changes on failure)
2. synthesize an Entry with a ``local_`` id
3. append it to the in-memory WeekDetail and notify the view
4. POST it through the API port
5. success -> force-refetch the week so the server's copy replaces ours
6. failure -> remove exactly that entry and notify the view again
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from mileage.data.models import (
    LOCAL_ID_PREFIX,
    Entry,
    WeekDetail,
    now_iso,
    to_iso_date,
)
from mileage.ports.api_port import ApiError
from mileage.ports.view_port import NullView, Resource, Severity

if TYPE_CHECKING:
    from mileage.core.loader import LoadResult, StaleWhileRevalidateLoader
    from mileage.core.state import AppState
    from mileage.ports.api_port import ApiPort
    from mileage.ports.view_port import ViewPort

logger = logging.getLogger(__name__)


class ValidationError(ValueError):
    """User input is malformed; reported, never retried, no state change."""


@dataclass
class MutationResult:
    success: bool
    entry: Entry | None = None
    error: Exception | None = None
    refetch: LoadResult | None = None

    @property
    def message(self) -> str:
        if self.success:
            return "Entry added."
        return f"Add failed: {self.error}" if self.error else "Add failed."


def parse_miles(miles: float | int | str | None) -> float:
    """Coerce user input to a finite positive float or raise ValidationError."""
    if miles is None or (isinstance(miles, str) and not miles.strip()):
        raise ValidationError("Enter a valid miles number (e.g., 2.5).")
    if isinstance(miles, bool):
        raise ValidationError("Enter a valid miles number (e.g., 2.5).")
    try:
        value = float(miles)
    except (TypeError, ValueError):
        raise ValidationError("Enter a valid miles number (e.g., 2.5).") from None
    if not math.isfinite(value) or value <= 0:
        raise ValidationError("Enter a valid miles number (e.g., 2.5).")
    return value


def new_local_id() -> str:
    return f"{LOCAL_ID_PREFIX}{uuid.uuid4().hex[:16]}"


class MutationCoordinator:
    """Applies entries optimistically and reconciles with the server."""

    def __init__(
        self,
        api: ApiPort,
        loader: StaleWhileRevalidateLoader,
        view: ViewPort | None = None,
    ) -> None:
        self._api = api
        self._loader = loader
        self._view = view or NullView()

    def validate(
        self,
        state: AppState,
        week_id: str | None,
        person: str | None,
        date: str | None,
        category: str | None,
        miles: float | int | str | None,
    ) -> tuple[str, float]:
        """Check every precondition; returns (iso_date, miles)."""
        if not week_id or not person or not date or not category:
            raise ValidationError("Missing selection (person/week/day/category).")

        value = parse_miles(miles)

        iso_date = to_iso_date(date)
        if iso_date is None:
            raise ValidationError(f"Invalid date: {date!r}")

        if state.categories and category not in state.categories:
            raise ValidationError(f"Unknown category: {category!r}")

        week = state.find_week(week_id)
        if week is not None and week.days() and iso_date not in week.days():
            raise ValidationError(f"{iso_date} is outside week {week_id}")

        return iso_date, value

    async def add_entry(
        self,
        state: AppState,
        week_id: str | None,
        person: str | None,
        date: str | None,
        category: str | None,
        miles: float | int | str | None,
    ) -> MutationResult:
        """Add an entry optimistically.

        Raises ValidationError before touching state; every other failure
        is rolled back and reported in the returned MutationResult.
        """
        iso_date, value = self.validate(state, week_id, person, date, category, miles)

        entry = Entry(
            id=new_local_id(),
            person=person,
            week_id=week_id,
            date=iso_date,
            category=category,
            miles=value,
            ts=now_iso(),
        )

        detail = self._ensure_week_detail(state, week_id, person)
        detail.entries.append(entry)
        self._view.data_changed(Resource.WEEK_DETAIL, detail)
        self._view.status("Adding entry…", Severity.INFO)
        logger.info("Optimistic entry %s: %s %.2f mi on %s", entry.id, person, value, iso_date)

        try:
            await self._api.call("entry", "POST", entry.to_wire())
        except ApiError as exc:
            detail.remove_entry(entry.id)
            self._view.data_changed(Resource.WEEK_DETAIL, detail)
            self._view.status(f"Add failed: {exc}", Severity.ERROR)
            logger.warning("Entry %s rolled back: %s", entry.id, exc)
            return MutationResult(success=False, entry=entry, error=exc)

        refetch = await self._loader.load_week_detail(state, week_id, person, force=True)
        self._view.status("Entry added.", Severity.OK)
        return MutationResult(success=True, entry=entry, refetch=refetch)

    @staticmethod
    def _ensure_week_detail(state: AppState, week_id: str, person: str) -> WeekDetail:
        """Return the in-memory detail for (week, person), creating an empty shell if needed."""
        if state.holds_detail_for(week_id, person):
            return state.week_detail

        week = state.find_week(week_id)
        state.week_detail = WeekDetail(
            week_id=week_id,
            person=person,
            start_date=week.start_date if week else None,
            end_date=week.end_date if week else None,
        )
        return state.week_detail
