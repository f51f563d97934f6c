"""
Mileage Tracker — Application State.

A single explicit state object owned by the TrackerService. The loader
and the mutation coordinator read and write it; nothing lives in
module-level globals.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from mileage.data.models import ConfigSnapshot, WeekDescriptor, WeekDetail


@dataclass
class AppState:
    """Loaded snapshots plus the user's current selection."""

    config: ConfigSnapshot | None = None
    weeks: list[WeekDescriptor] = field(default_factory=list)
    week_detail: WeekDetail | None = None

    selected_person: str | None = None
    selected_week_id: str | None = None
    selected_day: str | None = None
    selected_category: str | None = None

    @property
    def people(self) -> list[str]:
        return list(self.config.people) if self.config else []

    @property
    def categories(self) -> list[str]:
        return list(self.config.categories) if self.config else []

    def find_week(self, week_id: str | None) -> WeekDescriptor | None:
        if week_id is None:
            return None
        return next((w for w in self.weeks if w.week_id == week_id), None)

    @property
    def selected_week(self) -> WeekDescriptor | None:
        return self.find_week(self.selected_week_id)

    def day_options(self) -> list[str]:
        """The seven ISO dates of the selected week ([] without a week)."""
        week = self.selected_week
        return week.days() if week else []

    def apply_defaults(self) -> None:
        """Fill empty selections with the first available option."""
        if self.selected_person is None and self.people:
            self.selected_person = self.people[0]
        if self.selected_week_id is None and self.weeks:
            self.selected_week_id = self.weeks[0].week_id
        if self.selected_category is None and self.categories:
            self.selected_category = self.categories[0]
        self.sync_day()

    def sync_day(self) -> None:
        """Keep selected_day inside the selected week, else reset to its first day."""
        days = self.day_options()
        if not days:
            self.selected_day = None
        elif self.selected_day not in days:
            self.selected_day = days[0]

    def holds_detail_for(self, week_id: str, person: str) -> bool:
        return self.week_detail is not None and self.week_detail.key() == (week_id, person)

    def week_total(self) -> float:
        return self.week_detail.total() if self.week_detail else 0.0

    def day_total(self) -> float:
        return self.week_detail.day_total(self.selected_day) if self.week_detail else 0.0
