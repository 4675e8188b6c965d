"""Lectura de exportaciones JSON de telemetría del equipo del acuario."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from rrj_watch.documents import (
    CONTAINER_STATUS,
    HOURLY_WATER_QUALITY,
    LIVE_READING,
    WATER_HISTORY,
    history_entry_from_document,
    history_entry_to_document,
    hourly_point_from_document,
    hourly_point_to_document,
    reading_from_document,
    reading_to_document,
    status_from_document,
    status_to_document,
)
from rrj_watch.model import ContainerStatus, HistoryEntry, HourlyPoint, SensorReading
from rrj_watch.sources.base import DataSource, SourcePaths
from rrj_watch.storage import DocumentStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppliancePaths(SourcePaths):
    """Paths for appliance telemetry exports."""

    # root: folder containing telemetry_*.json


@dataclass(frozen=True)
class ApplianceSnapshot:
    """Everything one telemetry export carries."""

    reading: SensorReading | None = None
    status: ContainerStatus | None = None
    history: tuple[HistoryEntry, ...] = ()
    hourly: tuple[HourlyPoint, ...] = ()


class ApplianceSource(DataSource):
    """Appliance telemetry JSON source."""

    pattern = "telemetry_*.json"

    def load_snapshot(self, path: Path) -> ApplianceSnapshot:
        """Parse a telemetry export into typed records.

        Args:
            path: Path to JSON file.

        Returns:
            Parsed snapshot; sections missing from the file stay empty.

        Raises:
            ValueError: If the JSON is not an object.
        """
        text = path.read_text(encoding="utf-8")
        raw = _extract_json_object(text)
        if not isinstance(raw, dict):
            raise ValueError("Telemetry JSON must be an object")

        live = raw.get("live")
        containers = raw.get("containers")
        return ApplianceSnapshot(
            reading=reading_from_document(live) if isinstance(live, dict) else None,
            status=(
                status_from_document(containers)
                if isinstance(containers, dict)
                else None
            ),
            history=tuple(
                history_entry_from_document(item)
                for item in _dict_items(raw, "history")
            ),
            hourly=tuple(
                hourly_point_from_document(item) for item in _dict_items(raw, "hourly")
            ),
        )


def publish_snapshot(store: DocumentStore, snapshot: ApplianceSnapshot) -> int:
    """Write a snapshot into the store. Returns the number of documents written.

    History days and hourly samples are keyed by their timestamp, so importing
    the same export twice overwrites instead of duplicating.
    """
    written = 0
    if snapshot.reading is not None:
        store.set(*LIVE_READING, reading_to_document(snapshot.reading))
        written += 1
    if snapshot.status is not None:
        store.set(*CONTAINER_STATUS, status_to_document(snapshot.status))
        written += 1
    for entry in snapshot.history:
        if entry.timestamp is None:
            logger.warning("Skipping history entry without timestamp")
            continue
        doc_id = entry.timestamp.strftime("%Y-%m-%d")
        store.set(WATER_HISTORY, doc_id, history_entry_to_document(entry))
        written += 1
    for point in snapshot.hourly:
        if point.timestamp is None:
            logger.warning("Skipping hourly sample without timestamp")
            continue
        doc_id = point.timestamp.strftime("%Y-%m-%dT%H")
        store.set(HOURLY_WATER_QUALITY, doc_id, hourly_point_to_document(point))
        written += 1
    return written


def _dict_items(raw: dict[str, Any], key: str) -> list[dict[str, Any]]:
    items = raw.get(key)
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


def _extract_json_object(text: str) -> Any:
    """Extract JSON object from text, tolerating leading non-JSON (e.g. log lines)."""
    start = text.find("{")
    if start >= 0:
        return json.loads(text[start:])
    return json.loads(text)
