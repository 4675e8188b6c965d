"""Suscripciones del dashboard: cada push recalcula el estado completo."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from dateutil import tz

from rrj_watch.consumption import HISTORY_WINDOW_DAYS, estimate_supplies
from rrj_watch.documents import (
    CONTAINER_STATUS,
    LIVE_READING,
    WATER_HISTORY,
    history_entry_from_document,
    reading_from_document,
    status_from_document,
)
from rrj_watch.model import (
    ContainerStatus,
    HistoryEntry,
    SensorReading,
    SupplyEstimate,
    WaterQualityRanges,
    WaterSafety,
)
from rrj_watch.safety import (
    DEFAULT_RANGES,
    FRESHNESS_WINDOW,
    evaluate_water_safety,
    is_online,
)
from rrj_watch.storage import (
    DocumentStore,
    StoreError,
    StoreUnavailableError,
    Unsubscribe,
)

logger = logging.getLogger(__name__)

SOURCE_LIVE = "live"
SOURCE_CONTAINERS = "containers"
SOURCE_HISTORY = "history"

_ERROR_TEXT = {
    SOURCE_LIVE: (
        "Failed to fetch live data.",
        "You are offline. Showing last cached data.",
    ),
    SOURCE_CONTAINERS: (
        "Failed to fetch container levels.",
        "You are offline. Levels may be out of sync.",
    ),
    SOURCE_HISTORY: (
        "Failed to fetch history.",
        "You are offline. Historical data could not be fetched.",
    ),
}


@dataclass(frozen=True)
class DashboardState:
    """Everything the view needs, recomputed from the latest pushes."""

    reading: SensorReading | None
    status: ContainerStatus | None
    history: tuple[HistoryEntry, ...]
    online: bool
    safety: WaterSafety
    supplies: SupplyEstimate
    computed_at: datetime
    errors: dict[str, str] = field(default_factory=dict)


class DashboardMonitor:
    """Holds the latest value of each subscription and recomputes on change."""

    def __init__(
        self,
        store: DocumentStore,
        ranges: WaterQualityRanges = DEFAULT_RANGES,
        freshness_window: timedelta = FRESHNESS_WINDOW,
        history_limit: int = HISTORY_WINDOW_DAYS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._ranges = ranges
        self._freshness_window = freshness_window
        self._history_limit = history_limit
        self._clock = clock or (lambda: datetime.now(tz=tz.UTC))
        self._reading: SensorReading | None = None
        self._status: ContainerStatus | None = None
        self._history: tuple[HistoryEntry, ...] = ()
        self._errors: dict[str, str] = {}
        self._listeners: list[Callable[[DashboardState], None]] = []
        self._unsubscribes: list[Unsubscribe] = []
        self._state = self._compute()

    @property
    def state(self) -> DashboardState:
        return self._state

    def add_listener(self, listener: Callable[[DashboardState], None]) -> None:
        self._listeners.append(listener)

    def start(self) -> None:
        """Subscribe to live reading, container levels and recent history."""
        if self._unsubscribes:
            return
        self._unsubscribes = [
            self._store.subscribe(
                *LIVE_READING,
                on_change=self._on_live,
                on_error=lambda exc: self._on_error(SOURCE_LIVE, exc),
            ),
            self._store.subscribe(
                *CONTAINER_STATUS,
                on_change=self._on_containers,
                on_error=lambda exc: self._on_error(SOURCE_CONTAINERS, exc),
            ),
            self._store.subscribe_recent(
                WATER_HISTORY,
                self._history_limit,
                on_change=self._on_history,
                on_error=lambda exc: self._on_error(SOURCE_HISTORY, exc),
            ),
        ]

    def stop(self) -> None:
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes = []

    def refresh(self, now: datetime | None = None) -> DashboardState:
        """Recompute with a fresh clock value (detects a stalled sensor)."""
        return self._publish(now)

    def _on_live(self, data: dict[str, Any] | None) -> None:
        if data is None:
            self._errors[SOURCE_LIVE] = "Live data not found."
        else:
            self._reading = reading_from_document(data)
            self._errors.pop(SOURCE_LIVE, None)
        self._publish()

    def _on_containers(self, data: dict[str, Any] | None) -> None:
        if data is None:
            self._errors[SOURCE_CONTAINERS] = "Container levels not found."
        else:
            self._status = status_from_document(data)
            self._errors.pop(SOURCE_CONTAINERS, None)
        self._publish()

    def _on_history(self, docs: list[dict[str, Any]]) -> None:
        self._history = tuple(history_entry_from_document(d) for d in docs)
        if self._history:
            self._errors.pop(SOURCE_HISTORY, None)
        else:
            self._errors[SOURCE_HISTORY] = (
                f"No historical data found for the last {self._history_limit} days."
            )
        self._publish()

    def _on_error(self, source: str, exc: StoreError) -> None:
        logger.error("Error fetching %s: %s", source, exc)
        failed, offline = _ERROR_TEXT[source]
        self._errors[source] = (
            offline if isinstance(exc, StoreUnavailableError) else failed
        )
        self._publish()

    def _publish(self, now: datetime | None = None) -> DashboardState:
        self._state = self._compute(now)
        for listener in list(self._listeners):
            listener(self._state)
        return self._state

    def _compute(self, now: datetime | None = None) -> DashboardState:
        current = now or self._clock()
        reading = self._reading
        online = is_online(
            reading.observed_at if reading else None,
            now=current,
            window=self._freshness_window,
        )
        return DashboardState(
            reading=reading,
            status=self._status,
            history=self._history,
            online=online,
            safety=evaluate_water_safety(reading, self._ranges, is_online=online),
            supplies=estimate_supplies(
                self._status,
                [e.consumption for e in self._history],
                window=self._history_limit,
            ),
            computed_at=current,
            errors=dict(self._errors),
        )
