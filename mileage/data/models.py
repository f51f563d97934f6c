"""
Mileage Tracker — Data Models.

Plain dataclasses for everything the client holds in memory or in cache,
plus the normalizers that turn loosely-shaped server payloads into them.
The remote service is not consistent about field names, so every
normalizer accepts the known aliases and falls back to safe defaults.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any

LOCAL_ID_PREFIX = "local_"

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass
class ConfigSnapshot:
    """Global configuration: tracked year, annual goal, people and categories."""

    year: int | None = None
    goal: float | None = None
    people: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)

    def to_wire(self) -> dict:
        return {
            "year": self.year,
            "goal": self.goal,
            "people": list(self.people),
            "categories": list(self.categories),
        }


@dataclass
class WeekDescriptor:
    """One week of the tracked year. end_date is six days after start_date."""

    week_id: str
    week_num: int | None = None
    start_date: str | None = None   # ISO date YYYY-MM-DD
    end_date: str | None = None     # ISO date YYYY-MM-DD

    def days(self) -> list[str]:
        """The seven ISO dates of this week, or [] when the start is unknown."""
        return week_days(self.start_date)

    def to_wire(self) -> dict:
        return {
            "weekId": self.week_id,
            "weekNum": self.week_num,
            "startDate": self.start_date,
            "endDate": self.end_date,
        }


@dataclass
class Entry:
    """A single mileage record.

    Entries synthesized on the client carry an id starting with
    LOCAL_ID_PREFIX until the server's canonical copy replaces them.
    """

    id: str | None
    person: str | None
    week_id: str | None
    date: str | None        # ISO date YYYY-MM-DD
    category: str | None
    miles: float
    ts: str                 # ISO timestamp

    @property
    def is_local(self) -> bool:
        return bool(self.id) and self.id.startswith(LOCAL_ID_PREFIX)

    def to_wire(self) -> dict:
        return {
            "id": self.id,
            "person": self.person,
            "weekId": self.week_id,
            "dateISO": self.date,
            "category": self.category,
            "miles": self.miles,
            "ts": self.ts,
        }


@dataclass
class WeekDetail:
    """Entries for one (week, person) pair."""

    week_id: str
    person: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    entries: list[Entry] = field(default_factory=list)

    def key(self) -> tuple[str, str | None]:
        return (self.week_id, self.person)

    def total(self) -> float:
        return sum(e.miles for e in self.entries)

    def day_total(self, day: str | None) -> float:
        if not day:
            return 0.0
        return sum(e.miles for e in self.entries if e.date == day)

    def sorted_entries(self) -> list[Entry]:
        """Entries newest first."""
        return sorted(self.entries, key=lambda e: e.ts or "", reverse=True)

    def remove_entry(self, entry_id: str) -> bool:
        before = len(self.entries)
        self.entries = [e for e in self.entries if e.id != entry_id]
        return len(self.entries) != before

    def to_wire(self) -> dict:
        return {
            "weekId": self.week_id,
            "person": self.person,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "entries": [e.to_wire() for e in self.entries],
        }


@dataclass
class CacheRecord:
    """A cached payload plus the wall-clock time (seconds) it was written."""

    timestamp: float
    value: Any

    def age(self, now: float) -> float:
        return max(0.0, now - self.timestamp)

    def is_fresh(self, now: float, threshold_seconds: float) -> bool:
        return self.age(now) < threshold_seconds


# ---------------------------------------------------------------------------
# Date helpers
# ---------------------------------------------------------------------------


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def to_iso_date(value: Any) -> str | None:
    """Coerce a date, datetime or date-ish string to YYYY-MM-DD (None if unparseable)."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        text = value.strip()
        try:
            if _ISO_DATE_RE.match(text):
                return date.fromisoformat(text).isoformat()
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date().isoformat()
        except ValueError:
            return None
    return None


def week_days(start_date: str | None) -> list[str]:
    start = to_iso_date(start_date)
    if start is None:
        return []
    d0 = date.fromisoformat(start)
    return [(d0 + timedelta(days=i)).isoformat() for i in range(7)]


# ---------------------------------------------------------------------------
# Normalizers (server payload -> models)
# ---------------------------------------------------------------------------


def _first(d: dict, *keys: str) -> Any:
    for k in keys:
        v = d.get(k)
        if v is not None and v != "":
            return v
    return None


def _unique(items: Any) -> list[str]:
    if not isinstance(items, list):
        return []
    seen: list[str] = []
    for item in items:
        s = str(item).strip()
        if s and s not in seen:
            seen.append(s)
    return seen


def _to_float(value: Any) -> float | None:
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def normalize_config(payload: dict, default_categories: list[str]) -> ConfigSnapshot:
    year = _first(payload, "year")
    try:
        year = int(year) if year is not None else None
    except (TypeError, ValueError):
        year = None

    categories = _unique(payload.get("categories"))
    return ConfigSnapshot(
        year=year,
        goal=_to_float(_first(payload, "goal", "annualGoal", "goalMiles")),
        people=_unique(payload.get("people")),
        categories=categories or list(default_categories),
    )


def normalize_week(payload: dict) -> WeekDescriptor | None:
    week_id = _first(payload, "weekId", "id")
    if week_id is None:
        return None
    week_num = _first(payload, "weekNum", "week")
    try:
        week_num = int(week_num) if week_num is not None else None
    except (TypeError, ValueError):
        week_num = None
    start = to_iso_date(_first(payload, "startDate", "start", "weekStart"))
    end = to_iso_date(_first(payload, "endDate", "end", "weekEnd"))
    if end is None and start is not None:
        end = week_days(start)[6]
    return WeekDescriptor(week_id=str(week_id), week_num=week_num, start_date=start, end_date=end)


def normalize_weeks(payload: list) -> list[WeekDescriptor]:
    weeks = (normalize_week(w) for w in payload if isinstance(w, dict))
    return [w for w in weeks if w is not None]


def normalize_entry(payload: dict) -> Entry:
    entry_id = _first(payload, "id", "entryId", "uuid")
    return Entry(
        id=str(entry_id) if entry_id is not None else None,
        person=_first(payload, "person", "name"),
        week_id=_first(payload, "weekId"),
        date=to_iso_date(_first(payload, "dateISO", "date", "day", "entryDate")),
        category=_first(payload, "category", "type"),
        miles=_to_float(_first(payload, "miles", "distance")) or 0.0,
        ts=_first(payload, "ts", "timestamp", "createdAt") or now_iso(),
    )


def normalize_week_detail(payload: dict, week_id: str, person: str | None = None) -> WeekDetail:
    raw_entries = payload.get("entries")
    if not isinstance(raw_entries, list):
        raw_entries = payload.get("data")
    if not isinstance(raw_entries, list):
        raw_entries = []

    entries: list[Entry] = []
    seen_ids: set[str] = set()
    for raw in raw_entries:
        if not isinstance(raw, dict):
            continue
        entry = normalize_entry(raw)
        if entry.id is not None:
            if entry.id in seen_ids:
                continue
            seen_ids.add(entry.id)
        entries.append(entry)

    return WeekDetail(
        week_id=str(payload.get("weekId") or week_id),
        person=person if person is not None else payload.get("person"),
        start_date=to_iso_date(_first(payload, "startDate", "start", "weekStart")),
        end_date=to_iso_date(_first(payload, "endDate", "end", "weekEnd")),
        entries=entries,
    )
