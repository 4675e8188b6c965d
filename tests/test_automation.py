from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest
from dateutil import tz

from rrj_watch import automation
from rrj_watch.automation import (
    AutomationController,
    ScheduleValidationError,
    parse_schedule_input,
)
from rrj_watch.storage import SQLiteStore

TODAY = date(2026, 3, 1)


@pytest.fixture(autouse=True)
def _utc_local_tz(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(automation, "_LOCAL_TZ", tz.UTC)


@pytest.fixture()
def store(tmp_path: Path) -> SQLiteStore:
    return SQLiteStore(tmp_path / "app.sqlite3")


@pytest.mark.parametrize(
    ("time_text", "grams", "expected"),
    [
        ("8:05", 10, (8, 5, 10.0)),
        ("23:59", "500", (23, 59, 500.0)),
        ("00:00", 1, (0, 0, 1.0)),
    ],
)
def test_parse_schedule_input_valid(
    time_text: str, grams: object, expected: tuple[int, int, float]
) -> None:
    assert parse_schedule_input(time_text, grams) == expected


@pytest.mark.parametrize(
    ("time_text", "grams", "field", "message"),
    [
        ("24:00", 10, "time", "Please enter a valid time."),
        ("8:5", 10, "time", "Please enter a valid time."),
        ("", 10, "time", "Please enter a valid time."),
        ("08:00", 0, "grams", "Grams must be at least 1."),
        ("08:00", "abc", "grams", "Grams must be at least 1."),
        ("08:00", 501, "grams", "Grams cannot exceed 500."),
    ],
)
def test_parse_schedule_input_invalid(
    time_text: str, grams: object, field: str, message: str
) -> None:
    with pytest.raises(ScheduleValidationError, match=message) as excinfo:
        parse_schedule_input(time_text, grams)
    assert excinfo.value.field == field


def test_update_schedule_stores_time_and_grams(store: SQLiteStore) -> None:
    controller = AutomationController(store)
    message = controller.update_schedule(1, "18:30", "25", today=TODAY)
    assert message == "Feeding set to 06:30 PM for 25g."

    settings = controller.load()
    first = settings.schedules[0]
    assert first.time is not None
    assert (first.time.hour, first.time.minute) == (18, 30)
    assert first.grams == 25
    assert not settings.schedules[1].is_set


def test_update_schedule_rejects_duplicate_time(store: SQLiteStore) -> None:
    controller = AutomationController(store)
    controller.update_schedule(1, "08:00", 10, today=TODAY)
    with pytest.raises(ScheduleValidationError, match="same time"):
        controller.update_schedule(2, "8:00", 15, today=TODAY)
    # Same slot may be re-saved with its own time
    controller.update_schedule(1, "08:00", 12, today=TODAY)
    assert controller.load().schedules[0].grams == 12


def test_update_schedule_unknown_slot(store: SQLiteStore) -> None:
    with pytest.raises(KeyError):
        AutomationController(store).update_schedule(3, "08:00", 10, today=TODAY)


def test_disable_feeding_clears_schedules(store: SQLiteStore) -> None:
    controller = AutomationController(store)
    assert controller.set_feeding_enabled(True) == "Automated feeding has been enabled."
    controller.update_schedule(1, "08:00", 10, today=TODAY)
    controller.update_schedule(2, "20:00", 10, today=TODAY)

    message = controller.set_feeding_enabled(False)
    assert message == "Automated feeding disabled and schedules cleared."
    settings = controller.load()
    assert settings.feeding_enabled is False
    assert not any(s.is_set for s in settings.schedules)
    assert store.get("settings", "status") == {"feedingEnabled": False}


def test_clear_schedule(store: SQLiteStore) -> None:
    controller = AutomationController(store)
    controller.update_schedule(1, "08:00", 10, today=TODAY)
    controller.update_schedule(2, "20:00", 10, today=TODAY)
    controller.clear_schedule(1)
    settings = controller.load()
    assert not settings.schedules[0].is_set
    assert settings.schedules[1].is_set


def test_ph_balancer_toggle_keeps_feeding(store: SQLiteStore) -> None:
    controller = AutomationController(store)
    controller.set_feeding_enabled(True)
    assert controller.set_ph_balancer_enabled(True) == "pH balancer enabled."
    settings = controller.load()
    assert settings.ph_balancer_enabled is True
    assert settings.feeding_enabled is True
