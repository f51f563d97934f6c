"""
Mileage Tracker — UI-Agnostic Tracker Service.

Owns the AppState and exposes the operations a presentation layer needs:
start, select person/week/day/category, add entry, refresh. Every
lower-layer failure is turned into a status notification and a result
object; nothing escapes as an exception.

Each UI adapter (console, web, bot) calls this service and renders the
data it is notified about in its own way.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from mileage.core.loader import LoadResult, ResourceState, StaleWhileRevalidateLoader
from mileage.core.mutation_coordinator import (
    MutationCoordinator,
    MutationResult,
    ValidationError,
)
from mileage.core.state import AppState
from mileage.ports.view_port import NullView, Severity

if TYPE_CHECKING:
    from mileage.data.cache import CacheStore
    from mileage.ports.api_port import ApiPort
    from mileage.ports.view_port import ViewPort

logger = logging.getLogger(__name__)


class TrackerService:
    """Coordinates loader and mutations around a single explicit state."""

    def __init__(
        self,
        api: ApiPort,
        cache: CacheStore,
        view: ViewPort | None = None,
        state: AppState | None = None,
        refresh_after_seconds: float | None = None,
        default_categories: list[str] | None = None,
    ) -> None:
        self.state = state or AppState()
        self._api = api
        self._view = view or NullView()
        self.loader = StaleWhileRevalidateLoader(
            api,
            cache,
            self._view,
            refresh_after_seconds=refresh_after_seconds,
            default_categories=default_categories,
        )
        self.mutations = MutationCoordinator(api, self.loader, self._view)
        self._warmup_task: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # Start-up
    # ------------------------------------------------------------------

    async def start(self, warm_up: bool = True) -> AppState:
        """Show cached data, refresh config and weeks, then load the selected week."""
        if warm_up:
            self._start_warm_up()

        if self.loader.show_cached_bootstrap(self.state):
            self.state.apply_defaults()
            self._view.status("Loaded from cache — refreshing…", Severity.OK)
        else:
            self._view.status("Loading…", Severity.INFO)

        config_result, weeks_result = await self.loader.load_bootstrap(self.state)
        self.state.apply_defaults()

        detail_result = await self._load_selected_week()

        if self._all_failed(config_result, weeks_result):
            self._view.status("Load failed.", Severity.ERROR)
        elif detail_result is None or detail_result.ok:
            self._view.status("Ready.", Severity.OK)
        return self.state

    def _start_warm_up(self) -> None:
        warm_up = getattr(self._api, "warm_up", None)
        if warm_up is None:
            return
        self._warmup_task = asyncio.ensure_future(warm_up())

    async def close(self) -> None:
        """Cancel the warm-up ping if it is still running and wait for it to finish."""
        task, self._warmup_task = self._warmup_task, None
        if task is None:
            return
        if not task.done():
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    @staticmethod
    def _all_failed(*results: LoadResult) -> bool:
        return all(r.state is ResourceState.FAILED for r in results)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    async def select_person(self, person: str) -> AppState:
        self.state.selected_person = person
        logger.info("Person selected: %s", person)
        self._view.status("Person changed — loading…", Severity.INFO)
        await self._reload_selected_week()
        return self.state

    async def select_week(self, week_id: str) -> AppState:
        self.state.selected_week_id = week_id
        self.state.sync_day()
        logger.info("Week selected: %s", week_id)
        self._view.status("Week changed — loading…", Severity.INFO)
        await self._reload_selected_week()
        return self.state

    def select_day(self, day: str) -> AppState:
        """Select a day of the current week; anything else falls back to its first day."""
        self.state.selected_day = day
        self.state.sync_day()
        return self.state

    def select_category(self, category: str) -> AppState:
        if self.state.categories and category not in self.state.categories:
            self._view.status(f"Unknown category: {category}", Severity.ERROR)
            return self.state
        self.state.selected_category = category
        return self.state

    async def _reload_selected_week(self) -> None:
        result = await self._load_selected_week()
        if result is None or result.ok:
            self._view.status("Ready.", Severity.OK)

    async def _load_selected_week(self, force: bool = False) -> LoadResult | None:
        week_id = self.state.selected_week_id
        person = self.state.selected_person
        if not week_id or not person:
            return None
        return await self.loader.load_week_detail(self.state, week_id, person, force=force)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def add_entry(
        self,
        miles: float | int | str | None,
        date: str | None = None,
        category: str | None = None,
    ) -> MutationResult:
        """Add an entry for the selected person/week; date and category default to the selection."""
        try:
            return await self.mutations.add_entry(
                self.state,
                week_id=self.state.selected_week_id,
                person=self.state.selected_person,
                date=date or self.state.selected_day,
                category=category or self.state.selected_category,
                miles=miles,
            )
        except ValidationError as exc:
            logger.info("Entry rejected: %s", exc)
            self._view.status(str(exc), Severity.ERROR)
            return MutationResult(success=False, error=exc)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def refresh(self) -> AppState:
        """Force-reload config, weeks and the selected week, ignoring cache age."""
        self._view.status("Refreshing…", Severity.INFO)
        await self.loader.load_bootstrap(self.state, force=True)
        self.state.apply_defaults()
        result = await self._load_selected_week(force=True)
        if result is None or result.ok:
            self._view.status("Ready.", Severity.OK)
        return self.state
