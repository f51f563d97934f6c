"""
Mileage Tracker — Stale-While-Revalidate Loader.

For each resource (config, week index, one week detail per (week, person)):
show the cached value at once, fetch a fresh one unless the cache is
younger than SOFT_REFRESH_AFTER_SECONDS, replace state and cache on
success, and keep serving the cache on failure.

Per-key state: UNLOADED -> CACHED_ONLY -> FRESH, or FAILED when a fetch
fails with nothing cached. Overlapping fetches for the same key are not
fenced; whichever completes last wins.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from mileage.data.cache import CONFIG_KEY, WEEKS_KEY, week_detail_key
from mileage.data.models import (
    ConfigSnapshot,
    WeekDescriptor,
    WeekDetail,
    normalize_config,
    normalize_week_detail,
    normalize_weeks,
)
from mileage.ports.api_port import ApiError, ApplicationError
from mileage.ports.view_port import NullView, Resource, Severity

if TYPE_CHECKING:
    from mileage.core.state import AppState
    from mileage.data.cache import CacheStore
    from mileage.data.models import CacheRecord
    from mileage.ports.api_port import ApiPort
    from mileage.ports.view_port import ViewPort

logger = logging.getLogger(__name__)

_LABELS = {
    Resource.CONFIG: "config",
    Resource.WEEKS: "week list",
    Resource.WEEK_DETAIL: "week",
}


class ResourceState(Enum):
    UNLOADED = "unloaded"
    CACHED_ONLY = "cached_only"
    FRESH = "fresh"
    FAILED = "failed"


@dataclass
class LoadResult:
    """Outcome of one load: where the resource ended up and why."""

    resource: Resource
    state: ResourceState
    value: Any = None
    error: ApiError | None = None
    fetched: bool = False

    @property
    def ok(self) -> bool:
        return self.state in (ResourceState.CACHED_ONLY, ResourceState.FRESH)


@dataclass
class _Binding:
    """How one resource is fetched, decoded, stored and applied to state."""

    resource: Resource
    key: str
    operation: str
    fetch: Callable[[], Awaitable[Any]]
    decode: Callable[[Any], Any]
    encode: Callable[[Any], Any]
    apply: Callable[[Any], None]
    present: Callable[[], bool]


class StaleWhileRevalidateLoader:
    """Loads config, week index and week details through the cache."""

    def __init__(
        self,
        api: ApiPort,
        cache: CacheStore,
        view: ViewPort | None = None,
        refresh_after_seconds: float | None = None,
        default_categories: list[str] | None = None,
    ) -> None:
        if refresh_after_seconds is None or default_categories is None:
            from mileage.config import settings

            if refresh_after_seconds is None:
                refresh_after_seconds = settings.SOFT_REFRESH_AFTER_SECONDS
            if default_categories is None:
                default_categories = settings.DEFAULT_CATEGORIES

        self._api = api
        self._cache = cache
        self._view = view or NullView()
        self._refresh_after = refresh_after_seconds
        self._default_categories = list(default_categories)
        self._states: dict[str, ResourceState] = {}

    def state_of(self, key: str) -> ResourceState:
        return self._states.get(key, ResourceState.UNLOADED)

    # -- public loads ----------------------------------------------------

    def show_cached_bootstrap(self, state: AppState) -> bool:
        """Apply cached config and week index without touching the network."""
        shown = False
        for binding in (self._config_binding(state), self._weeks_binding(state)):
            value = self._read_cached(binding)
            if value is not None:
                self._surface(binding, value)
                shown = True
        return shown

    async def load_bootstrap(
        self, state: AppState, force: bool = False
    ) -> tuple[LoadResult, LoadResult]:
        """Load config and week index concurrently; both are joined before returning."""
        config_result, weeks_result = await asyncio.gather(
            self._load(self._config_binding(state), force),
            self._load(self._weeks_binding(state), force),
        )
        return config_result, weeks_result

    async def load_config(self, state: AppState, force: bool = False) -> LoadResult:
        return await self._load(self._config_binding(state), force)

    async def load_weeks(self, state: AppState, force: bool = False) -> LoadResult:
        return await self._load(self._weeks_binding(state), force)

    async def load_week_detail(
        self, state: AppState, week_id: str, person: str, force: bool = False
    ) -> LoadResult:
        return await self._load(self._week_detail_binding(state, week_id, person), force)

    # -- core state machine ----------------------------------------------

    async def _load(self, binding: _Binding, force: bool) -> LoadResult:
        label = _LABELS[binding.resource]
        record = self._cache.read(binding.key)
        cached = self._decode_cached(binding, record)
        current = self.state_of(binding.key)

        if cached is not None and (not force or not binding.present()):
            self._surface(binding, cached)
            current = self.state_of(binding.key)

        if not force and cached is not None and self._cache.is_fresh(record, self._refresh_after):
            logger.debug("%s cache is fresh; skipping fetch", label)
            return LoadResult(binding.resource, current, cached)

        try:
            payload = await binding.fetch()
            if payload is None:
                logger.info("%s fetch returned no data; keeping current state", label)
                return LoadResult(binding.resource, current, cached, fetched=True)
            value = self._decode_payload(binding, payload)
            if value is None:
                raise ApplicationError(binding.operation, f"Unexpected {label} response")
        except ApiError as exc:
            return self._fail(binding, cached, exc)

        binding.apply(value)
        self._cache.write(binding.key, binding.encode(value))
        self._states[binding.key] = ResourceState.FRESH
        self._view.data_changed(binding.resource, value)
        return LoadResult(binding.resource, ResourceState.FRESH, value, fetched=True)

    def _surface(self, binding: _Binding, value: Any) -> None:
        binding.apply(value)
        if self.state_of(binding.key) is not ResourceState.FRESH:
            self._states[binding.key] = ResourceState.CACHED_ONLY
        self._view.data_changed(binding.resource, value)

    def _fail(self, binding: _Binding, cached: Any, exc: ApiError) -> LoadResult:
        label = _LABELS[binding.resource]
        if cached is not None:
            logger.warning("Using cached %s (refresh failed): %s", label, exc)
            self._states[binding.key] = ResourceState.CACHED_ONLY
            self._view.status(f"Using cached {label} (refresh failed).", Severity.WARNING)
            return LoadResult(binding.resource, ResourceState.CACHED_ONLY, cached, exc, fetched=True)

        logger.error("%s load failed: %s", label.capitalize(), exc)
        self._states[binding.key] = ResourceState.FAILED
        self._view.status(f"{label.capitalize()} load failed: {exc}", Severity.ERROR)
        return LoadResult(binding.resource, ResourceState.FAILED, None, exc, fetched=True)

    def _read_cached(self, binding: _Binding) -> Any:
        return self._decode_cached(binding, self._cache.read(binding.key))

    @staticmethod
    def _decode_cached(binding: _Binding, record: CacheRecord | None) -> Any:
        """Decode a cache record; anything unreadable is a miss."""
        if record is None or record.value is None:
            return None
        try:
            return binding.decode(record.value)
        except (TypeError, ValueError, KeyError, AttributeError) as exc:
            logger.debug("Cached %s unreadable, treating as miss: %s", binding.key, exc)
            return None

    @staticmethod
    def _decode_payload(binding: _Binding, payload: Any) -> Any:
        """Decode a server payload; anything malformed is an ApplicationError."""
        try:
            return binding.decode(payload)
        except (TypeError, ValueError, KeyError, AttributeError) as exc:
            raise ApplicationError(
                binding.operation, f"Malformed {_LABELS[binding.resource]} response: {exc}"
            ) from exc

    # -- bindings --------------------------------------------------------

    def _config_binding(self, state: AppState) -> _Binding:
        def decode(raw: Any) -> ConfigSnapshot | None:
            if not isinstance(raw, dict):
                return None
            return normalize_config(raw, self._default_categories)

        def apply(value: ConfigSnapshot) -> None:
            state.config = value

        return _Binding(
            resource=Resource.CONFIG,
            key=CONFIG_KEY,
            operation="config",
            fetch=lambda: self._api.call("config", "GET"),
            decode=decode,
            encode=lambda value: value.to_wire(),
            apply=apply,
            present=lambda: state.config is not None,
        )

    def _weeks_binding(self, state: AppState) -> _Binding:
        def decode(raw: Any) -> list[WeekDescriptor] | None:
            if not isinstance(raw, list):
                return None
            return normalize_weeks(raw)

        def apply(value: list[WeekDescriptor]) -> None:
            state.weeks = value

        return _Binding(
            resource=Resource.WEEKS,
            key=WEEKS_KEY,
            operation="weeks",
            fetch=lambda: self._api.call("weeks", "GET"),
            decode=decode,
            encode=lambda value: [w.to_wire() for w in value],
            apply=apply,
            present=lambda: bool(state.weeks),
        )

    def _week_detail_binding(self, state: AppState, week_id: str, person: str) -> _Binding:
        def decode(raw: Any) -> WeekDetail | None:
            if isinstance(raw, list):
                raw = {"entries": raw}
            if not isinstance(raw, dict):
                return None
            detail = normalize_week_detail(raw, week_id, person)
            week = state.find_week(week_id)
            if week is not None:
                detail.start_date = detail.start_date or week.start_date
                detail.end_date = detail.end_date or week.end_date
            return detail

        def apply(value: WeekDetail) -> None:
            state.week_detail = value

        return _Binding(
            resource=Resource.WEEK_DETAIL,
            key=week_detail_key(week_id, person),
            operation="week",
            fetch=lambda: self._api.call("week", "GET", {"weekId": week_id, "person": person}),
            decode=decode,
            encode=lambda value: value.to_wire(),
            apply=apply,
            present=lambda: state.holds_detail_for(week_id, person),
        )
