"""Control de automatización: alimentador programado y balanceador de pH."""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any

from dateutil import tz

from rrj_watch.documents import (
    SCHEDULE_FIELDS,
    SETTINGS_STATUS,
    SETTINGS_TRIGGERED,
    settings_from_documents,
)
from rrj_watch.model import AutomationSettings, coerce_number
from rrj_watch.storage import DELETE_FIELD, DocumentStore

_LOCAL_TZ = tz.tzlocal()
_TIME_RX = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")

MIN_GRAMS = 1
MAX_GRAMS = 500


class ScheduleValidationError(ValueError):
    """Invalid feeding schedule input."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


def parse_schedule_input(time_text: str, grams: object) -> tuple[int, int, float]:
    """Validate a feeding slot form.

    Args:
        time_text: 24h time, ``H:MM`` or ``HH:MM``.
        grams: Portion; numeric strings are accepted.

    Returns:
        (hour, minute, grams).

    Raises:
        ScheduleValidationError: If the time or the portion is invalid.
    """
    match = _TIME_RX.match(str(time_text).strip())
    if match is None:
        raise ScheduleValidationError("time", "Please enter a valid time.")
    amount = _coerce_grams(grams)
    if amount is None or amount < MIN_GRAMS:
        raise ScheduleValidationError("grams", "Grams must be at least 1.")
    if amount > MAX_GRAMS:
        raise ScheduleValidationError("grams", "Grams cannot exceed 500.")
    return int(match.group(1)), int(match.group(2)), amount


def _coerce_grams(value: object) -> float | None:
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    return coerce_number(value)


class AutomationController:
    """Lee y modifica settings/status en el store."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def load(self) -> AutomationSettings:
        return settings_from_documents(
            self._store.get(*SETTINGS_STATUS),
            self._store.get(*SETTINGS_TRIGGERED),
        )

    def set_feeding_enabled(self, value: bool) -> str:
        """Toggle automated feeding; disabling also clears both slots."""
        updates: dict[str, Any] = {"feedingEnabled": value}
        if not value:
            for time_field, grams_field in SCHEDULE_FIELDS.values():
                updates[time_field] = DELETE_FIELD
                updates[grams_field] = DELETE_FIELD
        self._store.set(*SETTINGS_STATUS, updates, merge=True)
        if value:
            return "Automated feeding has been enabled."
        return "Automated feeding disabled and schedules cleared."

    def update_schedule(
        self,
        slot: int,
        time_text: str,
        grams: object,
        today: date | None = None,
    ) -> str:
        """Validate and store one feeding slot.

        Raises:
            ScheduleValidationError: Invalid input or same time as the other slot.
            KeyError: Unknown slot.
        """
        time_field, grams_field = SCHEDULE_FIELDS[slot]
        hour, minute, amount = parse_schedule_input(time_text, grams)
        day = today or datetime.now(tz=_LOCAL_TZ).date()
        when = datetime(day.year, day.month, day.day, hour, minute, tzinfo=_LOCAL_TZ)

        current = self.load()
        for other in current.schedules:
            if other.slot == slot or other.time is None:
                continue
            other_local = other.time.astimezone(_LOCAL_TZ)
            if (other_local.hour, other_local.minute) == (hour, minute):
                raise ScheduleValidationError(
                    "time", "Schedules cannot have the same time."
                )

        self._store.set(
            *SETTINGS_STATUS,
            {time_field: when.isoformat(), grams_field: amount},
            merge=True,
        )
        return f"Feeding set to {when.strftime('%I:%M %p')} for {amount:g}g."

    def clear_schedule(self, slot: int) -> str:
        time_field, grams_field = SCHEDULE_FIELDS[slot]
        self._store.set(
            *SETTINGS_STATUS,
            {time_field: DELETE_FIELD, grams_field: DELETE_FIELD},
            merge=True,
        )
        return "The feeding schedule has been cleared."

    def set_ph_balancer_enabled(self, value: bool) -> str:
        self._store.set(*SETTINGS_STATUS, {"phBalancerEnabled": value}, merge=True)
        return f"pH balancer {'enabled' if value else 'disabled'}."
