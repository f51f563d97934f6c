"""Console view adapter — implements ViewPort by logging and printing.

Also holds the label helpers the console uses to show weeks, days and
mileage totals.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from mileage.core.state import AppState
from mileage.data.models import WeekDescriptor, WeekDetail
from mileage.ports.view_port import Resource, Severity

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.OK: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


def format_miles(value: float | int | None) -> str:
    """Round to two decimals and drop trailing zeros: 3.50 -> '3.5', 4.00 -> '4'."""
    text = f"{round(float(value or 0), 2):.2f}"
    return text.rstrip("0").rstrip(".")


def _short(iso_date: str) -> str:
    d = date.fromisoformat(iso_date)
    return f"{d.strftime('%b')} {d.day}"


def day_label(iso_date: str) -> str:
    d = date.fromisoformat(iso_date)
    return f"{d.strftime('%a')} • {_short(iso_date)}"


def week_label(week: WeekDescriptor) -> str:
    if week.week_num is not None:
        prefix = f"W{week.week_num}"
    else:
        prefix = week.week_id or "Week"
    if week.start_date and week.end_date:
        return f"{prefix} • {_short(week.start_date)} – {_short(week.end_date)}"
    if week.start_date:
        return f"{prefix} • {_short(week.start_date)} – +6d"
    return prefix


class ConsoleView:
    """Console implementation of ViewPort."""

    def __init__(self, echo: bool = True) -> None:
        self._echo = echo
        self.last_status: tuple[str, Severity] | None = None

    def data_changed(self, resource: Resource, value: Any) -> None:
        if resource is Resource.WEEK_DETAIL and isinstance(value, WeekDetail):
            logger.debug(
                "Week %s/%s: %d entries, %s mi",
                value.week_id, value.person, len(value.entries), format_miles(value.total()),
            )
        else:
            logger.debug("%s changed", resource.value)

    def status(self, message: str, severity: Severity = Severity.INFO) -> None:
        self.last_status = (message, severity)
        logger.log(_LOG_LEVELS[severity], "%s", message)

    def render(self, state: AppState) -> str:
        """Plain-text summary of the current selection and totals."""
        lines = [
            f"Person:   {state.selected_person or '-'}  (of {', '.join(state.people) or 'none'})",
        ]
        week = state.selected_week
        lines.append(f"Week:     {week_label(week) if week else '-'}")
        lines.append(f"Day:      {day_label(state.selected_day) if state.selected_day else '-'}")
        lines.append(f"Category: {state.selected_category or '-'}")
        lines.append(f"Week total: {format_miles(state.week_total())} mi")
        lines.append(f"Day total:  {format_miles(state.day_total())} mi")

        detail = state.week_detail
        if detail is None or not detail.entries:
            lines.append("No entries for this week yet.")
        else:
            for e in detail.sorted_entries():
                day = day_label(e.date) if e.date else "?"
                pending = " (pending)" if e.is_local else ""
                lines.append(
                    f"  {day} • {e.category or ''} • {format_miles(e.miles)} mi{pending}"
                )

        text = "\n".join(lines)
        if self._echo:
            print(text)
        return text
