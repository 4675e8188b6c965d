"""Helpers de la GUI que no necesitan kivy."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pandas as pd
import pytest

from rrj_watch import app
from rrj_watch.model import (
    ContainerStatus,
    HistoryEntry,
    HourlyPoint,
    SensorReading,
    SupplyEstimate,
    WaterSafety,
)
from rrj_watch.monitor import DashboardState

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _state(**overrides: object) -> DashboardState:
    values: dict[str, object] = {
        "reading": SensorReading(temperature=25.0, turbidity=2.0, ph=7.04),
        "status": ContainerStatus(food_level=64, ph_solution_level=120),
        "history": (),
        "online": True,
        "safety": WaterSafety(True, frozenset(), "Water is safe for fish."),
        "supplies": SupplyEstimate(food_days=3, ph_days=None),
        "computed_at": NOW,
    }
    values.update(overrides)
    return DashboardState(**values)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    ("value", "unit", "expected"),
    [(None, "°C", "--"), (25.04, "°C", "25.0 °C"), (7.06, "", "7.1")],
)
def test_format_reading(value: float | None, unit: str, expected: str) -> None:
    assert app._format_reading(value, unit) == expected


@pytest.mark.parametrize(
    ("level", "band"),
    [
        (100, "high"),
        (50.5, "high"),
        (50, "medium"),
        (21, "medium"),
        (20, "low"),
        (0, "low"),
    ],
)
def test_level_band(level: float, band: str) -> None:
    assert app._level_band(level) == band


def test_containers_text_clamps_and_labels_unknown() -> None:
    text = app._containers_text(_state())
    assert "Food Container: 64% (high)" in text
    assert "pH Solution: 100% (high)" in text
    assert "Est. Remaining: 3 days" in text
    assert "Est. Remaining: ? Not consumed" in text


def test_containers_text_without_status() -> None:
    text = app._containers_text(_state(status=None))
    assert "Food Container: 0% (low)" in text


def test_water_text_uses_safety_message() -> None:
    unsafe = WaterSafety(False, frozenset({"pH"}), "Warning: Unsafe pH level(s).")
    text = app._water_text(_state(safety=unsafe))
    assert "pH Level: 7.0" in text
    assert "[color=ff3333]Warning: Unsafe pH level(s).[/color]" in text

    text = app._water_text(_state(reading=None))
    assert "Temperature: --" in text


def test_averages_text() -> None:
    history = (
        HistoryEntry(timestamp=NOW, temperature=24.0, turbidity=None, ph=7.0),
        HistoryEntry(timestamp=NOW, temperature=26.0, turbidity=None, ph=7.2),
    )
    hourly = [HourlyPoint(timestamp=NOW, temperature=25.5, ph=None, turbidity=1.0)]
    text = app._averages_text(_state(history=history), hourly)
    assert text.startswith("2-Day Averages")
    assert "Avg. Temp: 25.0 / 25.5 °C (22-28)" in text
    assert "Avg. Turbidity: -- / 1.0 NTU (0-10)" in text
    assert "Avg. pH: 7.1 / -- (6.5-7.5)" in text


def test_positive_int() -> None:
    assert app._positive_int(" 14 ", 7) == 14
    assert app._positive_int("0", 7) == 7
    assert app._positive_int("abc", 7) == 7


def test_format_preview_value() -> None:
    assert app._format_preview_value(None) == "N/A"
    assert app._format_preview_value(float("nan")) == "N/A"
    assert app._format_preview_value(date(2026, 3, 1)) == "01/03/2026"
    assert app._format_preview_value(80.0) == "80"
    assert app._format_preview_value(7.25) == "7.25"
    assert app._format_preview_value("Triggered") == "Triggered"


def test_display_frame_formats_every_cell() -> None:
    df = pd.DataFrame({"date": [date(2026, 3, 1)], "ph": [None]})
    out = app._display_frame(df)
    assert out.iloc[0].tolist() == ["01/03/2026", "N/A"]
