"""Tests for mileage.data.models — dataclasses and payload normalizers."""

from mileage.data.models import (
    CacheRecord,
    Entry,
    WeekDescriptor,
    WeekDetail,
    normalize_config,
    normalize_entry,
    normalize_week_detail,
    normalize_weeks,
    to_iso_date,
    week_days,
)


def _entry(entry_id, miles, day="2024-01-02", ts="2024-01-02T10:00:00Z"):
    return Entry(
        id=entry_id, person="Kai", week_id="2024-W01", date=day,
        category="Walk", miles=miles, ts=ts,
    )


class TestDates:
    def test_iso_date_passthrough(self):
        assert to_iso_date("2024-01-02") == "2024-01-02"

    def test_iso_timestamp_truncated_to_date(self):
        assert to_iso_date("2024-01-02T23:15:00Z") == "2024-01-02"

    def test_garbage_is_none(self):
        assert to_iso_date("next tuesday") is None
        assert to_iso_date(None) is None
        assert to_iso_date("") is None

    def test_week_days_are_seven_consecutive_dates(self):
        days = week_days("2024-12-30")
        assert days == [
            "2024-12-30", "2024-12-31", "2025-01-01", "2025-01-02",
            "2025-01-03", "2025-01-04", "2025-01-05",
        ]

    def test_week_days_without_start(self):
        assert week_days(None) == []

    def test_impossible_calendar_date_is_none(self):
        assert to_iso_date("2024-02-30") is None
        assert to_iso_date("2024-13-45") is None
        assert to_iso_date("2023-02-29T10:00:00Z") is None

    def test_leap_day_is_kept(self):
        assert to_iso_date("2024-02-29") == "2024-02-29"

    def test_week_days_with_impossible_start(self):
        assert week_days("2024-13-45") == []


class TestNormalizeConfig:
    def test_people_and_categories_keep_order(self):
        cfg = normalize_config(
            {"year": "2024", "goal": "1000", "people": ["Kai", "Lee"], "categories": ["Walk", "Bike"]},
            ["Other"],
        )
        assert cfg.year == 2024
        assert cfg.goal == 1000.0
        assert cfg.people == ["Kai", "Lee"]
        assert cfg.categories == ["Walk", "Bike"]

    def test_duplicates_dropped(self):
        cfg = normalize_config({"people": ["Kai", "Kai", "Lee"]}, ["Walk"])
        assert cfg.people == ["Kai", "Lee"]

    def test_missing_categories_use_defaults(self):
        cfg = normalize_config({"people": ["Kai"]}, ["Walk", "Bike", "Other"])
        assert cfg.categories == ["Walk", "Bike", "Other"]

    def test_goal_alias(self):
        assert normalize_config({"annualGoal": 750}, []).goal == 750.0


class TestNormalizeWeeks:
    def test_weeks_parsed_and_invalid_dropped(self):
        weeks = normalize_weeks([
            {"weekId": "2024-W01", "weekNum": 1, "startDate": "2024-01-01", "endDate": "2024-01-07"},
            {"weekNum": 2},
            "junk",
        ])
        assert len(weeks) == 1
        assert weeks[0] == WeekDescriptor("2024-W01", 1, "2024-01-01", "2024-01-07")

    def test_end_date_derived_from_start(self):
        weeks = normalize_weeks([{"weekId": "w", "start": "2024-01-08"}])
        assert weeks[0].end_date == "2024-01-14"

    def test_impossible_start_date_kept_without_dates(self):
        weeks = normalize_weeks([{"weekId": "w1", "startDate": "2024-02-30"}])
        assert weeks == [WeekDescriptor("w1", None, None, None)]
        assert weeks[0].days() == []


class TestNormalizeEntry:
    def test_aliases(self):
        entry = normalize_entry({
            "entryId": 42, "name": "Lee", "date": "2024-01-03T08:00:00Z",
            "type": "Bike", "distance": "4.5", "timestamp": "2024-01-03T08:00:00Z",
        })
        assert entry.id == "42"
        assert entry.person == "Lee"
        assert entry.date == "2024-01-03"
        assert entry.category == "Bike"
        assert entry.miles == 4.5

    def test_bad_miles_become_zero(self):
        assert normalize_entry({"id": "x", "miles": "lots"}).miles == 0.0

    def test_local_prefix(self):
        assert _entry("local_abc", 1).is_local
        assert not _entry("srv-1", 1).is_local


class TestNormalizeWeekDetail:
    def test_entries_from_data_key(self):
        detail = normalize_week_detail(
            {"weekStart": "2024-01-01", "weekEnd": "2024-01-07", "data": [{"id": "a", "miles": 2}]},
            "2024-W01", "Kai",
        )
        assert detail.week_id == "2024-W01"
        assert detail.person == "Kai"
        assert detail.start_date == "2024-01-01"
        assert detail.end_date == "2024-01-07"
        assert [e.id for e in detail.entries] == ["a"]

    def test_duplicate_ids_collapsed(self):
        detail = normalize_week_detail(
            {"entries": [{"id": "a", "miles": 1}, {"id": "a", "miles": 1}, {"id": "b", "miles": 2}]},
            "w", "Kai",
        )
        assert [e.id for e in detail.entries] == ["a", "b"]

    def test_no_entries(self):
        assert normalize_week_detail({}, "w", "Kai").entries == []


class TestWeekDetail:
    def test_totals(self):
        detail = WeekDetail("2024-W01", "Kai", entries=[
            _entry("a", 2.0, day="2024-01-02"),
            _entry("b", 3.0, day="2024-01-03"),
            _entry("c", 0.5, day="2024-01-02"),
        ])
        assert detail.total() == 5.5
        assert detail.day_total("2024-01-02") == 2.5
        assert detail.day_total(None) == 0.0

    def test_sorted_newest_first(self):
        detail = WeekDetail("w", "Kai", entries=[
            _entry("old", 1, ts="2024-01-01T00:00:00Z"),
            _entry("new", 1, ts="2024-01-05T00:00:00Z"),
        ])
        assert [e.id for e in detail.sorted_entries()] == ["new", "old"]

    def test_remove_entry(self):
        detail = WeekDetail("w", "Kai", entries=[_entry("a", 1), _entry("b", 2)])
        assert detail.remove_entry("a") is True
        assert detail.remove_entry("missing") is False
        assert [e.id for e in detail.entries] == ["b"]

    def test_wire_round_trip(self):
        detail = WeekDetail("w", "Kai", "2024-01-01", "2024-01-07", [_entry("a", 1.25)])
        assert normalize_week_detail(detail.to_wire(), "w", "Kai") == detail


def test_cache_record_freshness():
    record = CacheRecord(timestamp=100.0, value={"a": 1})
    assert record.is_fresh(now=110.0, threshold_seconds=20)
    assert not record.is_fresh(now=120.0, threshold_seconds=20)
    assert record.age(now=90.0) == 0.0
