"""Conversión entre documentos del store y modelos tipados."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from dateutil import tz
from dateutil.parser import isoparse

from rrj_watch.model import (
    AutomationSettings,
    ContainerStatus,
    DailyConsumptionRecord,
    FeedingSchedule,
    HistoryEntry,
    HourlyPoint,
    SensorReading,
    coerce_number,
)

LIVE_READING = ("current-water-quality", "live")
CONTAINER_STATUS = ("container-levels", "status")
SETTINGS_STATUS = ("settings", "status")
SETTINGS_TRIGGERED = ("settings", "triggered")
WATER_HISTORY = "water-history"
HOURLY_WATER_QUALITY = "hourly-water-quality"

SCHEDULE_FIELDS: dict[int, tuple[str, str]] = {
    1: ("feedingTime1", "feedingGrams1"),
    2: ("feedingTime2", "feedingGrams2"),
}


def parse_timestamp(value: object) -> datetime | None:
    """Parse a stored timestamp (ISO string or datetime); None if invalid."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        try:
            dt = isoparse(value.strip())
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz.UTC)
    return dt


def format_timestamp(value: datetime | None) -> str | None:
    """ISO-8601 in UTC, so stored timestamps sort in time order."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=tz.UTC)
    return value.astimezone(tz.UTC).isoformat()


def reading_from_document(data: Mapping[str, Any] | None) -> SensorReading:
    """Build a SensorReading; absent or invalid fields stay None."""
    data = data or {}
    return SensorReading(
        temperature=coerce_number(data.get("temperature")),
        turbidity=coerce_number(data.get("turbidity")),
        ph=coerce_number(data.get("ph")),
        observed_at=parse_timestamp(data.get("timestamp")),
    )


def reading_to_document(reading: SensorReading) -> dict[str, Any]:
    return {
        "temperature": reading.temperature,
        "turbidity": reading.turbidity,
        "ph": reading.ph,
        "timestamp": format_timestamp(reading.observed_at),
    }


def status_from_document(data: Mapping[str, Any] | None) -> ContainerStatus:
    """Build a ContainerStatus; missing levels read as 0."""
    data = data or {}
    return ContainerStatus(
        food_level=coerce_number(data.get("foodLevel")) or 0.0,
        ph_solution_level=coerce_number(data.get("phSolutionLevel")) or 0.0,
    )


def status_to_document(status: ContainerStatus) -> dict[str, Any]:
    return {
        "foodLevel": status.food_level,
        "phSolutionLevel": status.ph_solution_level,
    }


def _optional_bool(value: object) -> bool | None:
    if isinstance(value, bool):
        return value
    return None


def history_entry_from_document(data: Mapping[str, Any]) -> HistoryEntry:
    """Build one day of history from a water-history document."""
    raw_times = data.get("feedingSchedules")
    feeding_times: tuple[datetime, ...] = ()
    if isinstance(raw_times, list):
        parsed = (parse_timestamp(t) for t in raw_times)
        feeding_times = tuple(t for t in parsed if t is not None)
    return HistoryEntry(
        timestamp=parse_timestamp(data.get("timestamp")),
        temperature=coerce_number(data.get("temp")),
        turbidity=coerce_number(data.get("turbidity")),
        ph=coerce_number(data.get("ph")),
        feeding_times=feeding_times,
        ph_balancer_triggered=data.get("phBalancerTriggered") is True,
        auto_feeding_enabled=_optional_bool(data.get("isAutoFeedingEnabledToday")),
        auto_ph_enabled=_optional_bool(data.get("isAutoPhEnabledToday")),
        consumption=DailyConsumptionRecord(
            food_level_start=coerce_number(data.get("foodLevelStartOfDay")),
            food_level_end=coerce_number(data.get("foodLevelEndOfDay")),
            ph_level_start=coerce_number(data.get("phSolutionLevelStartOfDay")),
            ph_level_end=coerce_number(data.get("phSolutionLevelEndOfDay")),
        ),
    )


def history_entry_to_document(entry: HistoryEntry) -> dict[str, Any]:
    record = entry.consumption
    doc: dict[str, Any] = {
        "timestamp": format_timestamp(entry.timestamp),
        "temp": entry.temperature,
        "turbidity": entry.turbidity,
        "ph": entry.ph,
        "feedingSchedules": [format_timestamp(t) for t in entry.feeding_times],
        "phBalancerTriggered": entry.ph_balancer_triggered,
        "foodLevelStartOfDay": record.food_level_start,
        "foodLevelEndOfDay": record.food_level_end,
        "phSolutionLevelStartOfDay": record.ph_level_start,
        "phSolutionLevelEndOfDay": record.ph_level_end,
    }
    if entry.auto_feeding_enabled is not None:
        doc["isAutoFeedingEnabledToday"] = entry.auto_feeding_enabled
    if entry.auto_ph_enabled is not None:
        doc["isAutoPhEnabledToday"] = entry.auto_ph_enabled
    return doc


def hourly_point_from_document(data: Mapping[str, Any]) -> HourlyPoint:
    return HourlyPoint(
        timestamp=parse_timestamp(data.get("timestamp")),
        temperature=coerce_number(data.get("temperature")),
        ph=coerce_number(data.get("ph")),
        turbidity=coerce_number(data.get("turbidity")),
    )


def hourly_point_to_document(point: HourlyPoint) -> dict[str, Any]:
    return {
        "timestamp": format_timestamp(point.timestamp),
        "temperature": point.temperature,
        "ph": point.ph,
        "turbidity": point.turbidity,
    }


def settings_from_documents(
    status: Mapping[str, Any] | None,
    triggered: Mapping[str, Any] | None = None,
) -> AutomationSettings:
    """Build AutomationSettings from settings/status and settings/triggered."""
    status = status or {}
    triggered = triggered or {}
    schedules = tuple(
        FeedingSchedule(
            slot=slot,
            time=parse_timestamp(status.get(time_field)),
            grams=coerce_number(status.get(grams_field)) or 0.0,
        )
        for slot, (time_field, grams_field) in SCHEDULE_FIELDS.items()
    )
    return AutomationSettings(
        feeding_enabled=status.get("feedingEnabled") is True,
        ph_balancer_enabled=status.get("phBalancerEnabled") is True,
        schedules=schedules,
        feeding_last_triggered=parse_timestamp(triggered.get("feedingLastTriggered")),
        ph_last_triggered=parse_timestamp(triggered.get("phLastTriggered")),
    )
