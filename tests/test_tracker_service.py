"""Tests for mileage.core.tracker_service — start-up, selection, refresh.

Tests the TrackerService with a mocked API port and an in-memory cache.
No HTTP anywhere in this file.
"""

import asyncio

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock

from mileage.core.tracker_service import TrackerService
from mileage.data.cache import CONFIG_KEY, WEEKS_KEY, week_detail_key
from mileage.ports.api_port import TransportError
from mileage.ports.view_port import Severity

CONFIG = {"year": 2024, "goal": 1000, "people": ["Kai", "Lee"], "categories": ["Walk", "Bike"]}
WEEKS = [
    {"weekId": "2024-W01", "weekNum": 1, "startDate": "2024-01-01", "endDate": "2024-01-07"},
    {"weekId": "2024-W02", "weekNum": 2, "startDate": "2024-01-08", "endDate": "2024-01-14"},
]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _week_payload(method, payload):
    miles = 4 if payload["person"] == "Lee" else 2
    return {
        "weekId": payload["weekId"],
        "entries": [{"id": f"{payload['person']}-1", "dateISO": "2024-01-02", "category": "Walk", "miles": miles}],
    }


def _make_service(cache, view, responses=None):
    responses = responses or {"config": CONFIG, "weeks": WEEKS, "week": _week_payload, "entry": {"ok": True}}

    async def _call(operation, method="GET", payload=None):
        result = responses[operation]
        if callable(result):
            result = result(method, payload)
        if isinstance(result, BaseException):
            raise result
        return result

    api = MagicMock()
    api.call = AsyncMock(side_effect=_call)
    api.warm_up = AsyncMock()
    service = TrackerService(
        api, cache, view, refresh_after_seconds=20, default_categories=["Walk", "Bike", "Other"],
    )
    return service, api


def _offline(op):
    return TransportError(op, httpx.ConnectError("offline"))


# ---------------------------------------------------------------------------
# start
# ---------------------------------------------------------------------------


class TestStart:
    @pytest.mark.asyncio
    async def test_empty_cache_bootstrap_selects_defaults(self, cache, view):
        service, api = _make_service(cache, view)

        state = await service.start()

        assert state.people == ["Kai", "Lee"]
        assert state.categories == ["Walk", "Bike"]
        assert state.selected_person == "Kai"
        assert state.selected_week_id == "2024-W01"
        assert state.selected_day == "2024-01-01"
        assert state.selected_category == "Walk"
        assert state.week_total() == 2
        assert view.status.call_args.args == ("Ready.", Severity.OK)
        api.warm_up.assert_called_once()

    @pytest.mark.asyncio
    async def test_cached_start_reports_cache_first(self, cache, view, clock):
        cache.write(CONFIG_KEY, CONFIG)
        cache.write(WEEKS_KEY, WEEKS)
        clock.advance(60)
        service, _ = _make_service(cache, view)

        await service.start(warm_up=False)

        assert view.status.call_args_list[0].args == ("Loaded from cache — refreshing…", Severity.OK)

    @pytest.mark.asyncio
    async def test_everything_offline_without_cache(self, cache, view):
        service, _ = _make_service(cache, view, {
            "config": _offline("config"), "weeks": _offline("weeks"), "week": _offline("week"),
        })

        state = await service.start(warm_up=False)

        assert state.config is None
        assert state.selected_person is None
        assert view.status.call_args.args == ("Load failed.", Severity.ERROR)

    @pytest.mark.asyncio
    async def test_offline_with_cache_uses_cached_data(self, cache, view, clock):
        cache.write(CONFIG_KEY, CONFIG)
        cache.write(WEEKS_KEY, WEEKS)
        cache.write(week_detail_key("2024-W01", "Kai"), {"entries": [{"id": "a", "miles": 5}]})
        clock.advance(60)
        service, _ = _make_service(cache, view, {
            "config": _offline("config"), "weeks": _offline("weeks"), "week": _offline("week"),
        })

        state = await service.start(warm_up=False)

        assert state.selected_person == "Kai"
        assert state.week_total() == 5
        warnings = [c.args[0] for c in view.status.call_args_list if c.args[1] is Severity.WARNING]
        assert "Using cached week (refresh failed)." in warnings


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


class TestSelection:
    @pytest.mark.asyncio
    async def test_select_person_loads_their_week(self, cache, view):
        service, api = _make_service(cache, view)
        await service.start(warm_up=False)

        state = await service.select_person("Lee")

        assert state.week_detail.person == "Lee"
        assert state.week_total() == 4
        assert api.call.await_args.args == ("week", "GET", {"weekId": "2024-W01", "person": "Lee"})

    @pytest.mark.asyncio
    async def test_select_week_moves_day_into_new_week(self, cache, view):
        service, _ = _make_service(cache, view)
        await service.start(warm_up=False)
        service.select_day("2024-01-03")

        state = await service.select_week("2024-W02")

        assert state.selected_day == "2024-01-08"
        assert state.week_detail.week_id == "2024-W02"

    @pytest.mark.asyncio
    async def test_select_day_outside_week_resets(self, cache, view):
        service, _ = _make_service(cache, view)
        await service.start(warm_up=False)

        assert service.select_day("2024-01-05").selected_day == "2024-01-05"
        assert service.select_day("2030-01-01").selected_day == "2024-01-01"

    @pytest.mark.asyncio
    async def test_day_total_follows_selected_day(self, cache, view):
        service, _ = _make_service(cache, view)
        await service.start(warm_up=False)

        service.select_day("2024-01-02")
        assert service.state.day_total() == 2
        service.select_day("2024-01-03")
        assert service.state.day_total() == 0

    @pytest.mark.asyncio
    async def test_unknown_category_ignored(self, cache, view):
        service, _ = _make_service(cache, view)
        await service.start(warm_up=False)

        service.select_category("Swim")

        assert service.state.selected_category == "Walk"
        assert view.status.call_args.args[1] is Severity.ERROR


# ---------------------------------------------------------------------------
# add_entry / refresh
# ---------------------------------------------------------------------------


class TestAddEntry:
    @pytest.mark.asyncio
    async def test_uses_current_selection(self, cache, view):
        service, api = _make_service(cache, view)
        await service.start(warm_up=False)
        service.select_day("2024-01-04")

        result = await service.add_entry("1.5")

        assert result.success
        entry_call = next(c for c in api.call.await_args_list if c.args[0] == "entry")
        payload = entry_call.args[2]
        assert payload["person"] == "Kai"
        assert payload["weekId"] == "2024-W01"
        assert payload["dateISO"] == "2024-01-04"
        assert payload["category"] == "Walk"
        assert payload["miles"] == 1.5

    @pytest.mark.asyncio
    async def test_validation_error_becomes_status(self, cache, view):
        service, api = _make_service(cache, view)
        await service.start(warm_up=False)
        calls_before = api.call.await_count

        result = await service.add_entry("0")

        assert not result.success
        assert api.call.await_count == calls_before
        assert view.status.call_args.args[1] is Severity.ERROR


class TestRefresh:
    @pytest.mark.asyncio
    async def test_refresh_ignores_fresh_cache(self, cache, view):
        service, api = _make_service(cache, view)
        await service.start(warm_up=False)
        calls_after_start = api.call.await_count

        await service.refresh()

        assert api.call.await_count == calls_after_start + 3
        assert view.status.call_args.args == ("Ready.", Severity.OK)


# ---------------------------------------------------------------------------
# Malformed data and shutdown
# ---------------------------------------------------------------------------


class TestMalformedData:
    @pytest.mark.asyncio
    async def test_impossible_week_start_from_server(self, cache, view):
        service, _ = _make_service(cache, view, {
            "config": CONFIG,
            "weeks": [{"weekId": "w1", "startDate": "2024-02-30"}],
            "week": {"entries": []},
        })

        state = await service.start(warm_up=False)

        assert state.selected_week_id == "w1"
        assert state.day_options() == []

    @pytest.mark.asyncio
    async def test_cached_week_with_bad_dates(self, cache, memory_store, view):
        memory_store.set(WEEKS_KEY, '{"ts": 0, "data": [{"weekId": "w1", "startDate": "2024-13-45"}]}')
        service, _ = _make_service(cache, view)

        state = await service.start(warm_up=False)

        assert [w.week_id for w in state.weeks] == ["2024-W01", "2024-W02"]
        assert view.status.call_args.args == ("Ready.", Severity.OK)


class TestClose:
    @pytest.mark.asyncio
    async def test_close_cancels_pending_warm_up(self, cache, view):
        service, api = _make_service(cache, view)
        started = asyncio.Event()

        async def _hang():
            started.set()
            await asyncio.sleep(10)

        api.warm_up = AsyncMock(side_effect=_hang)
        await service.start()
        await started.wait()
        task = service._warmup_task

        await service.close()

        assert task.cancelled()
        assert service._warmup_task is None

    @pytest.mark.asyncio
    async def test_close_collects_finished_warm_up(self, cache, view):
        service, api = _make_service(cache, view)
        await service.start()
        task = service._warmup_task

        await service.close()

        assert task.done() and not task.cancelled()
        api.warm_up.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_without_warm_up(self, cache, view):
        service, _ = _make_service(cache, view)
        await service.start(warm_up=False)
        await service.close()
