from __future__ import annotations

import json
from pathlib import Path

import pytest

from rrj_watch.sources.appliance import (
    ApplianceSnapshot,
    AppliancePaths,
    ApplianceSource,
    _extract_json_object,
    publish_snapshot,
)
from rrj_watch.storage import SQLiteStore

TELEMETRY = {
    "live": {
        "temperature": 25.4,
        "turbidity": 2.1,
        "ph": 7.0,
        "timestamp": "2026-03-01T12:00:00+00:00",
    },
    "containers": {"foodLevel": 64, "phSolutionLevel": 48},
    "history": [
        {
            "timestamp": "2026-02-28T23:00:00+00:00",
            "temp": 25.1,
            "foodLevelStartOfDay": 70,
            "foodLevelEndOfDay": 64,
        },
        {"temp": 24.0},
        "garbage",
    ],
    "hourly": [
        {"timestamp": "2026-03-01T11:00:00+00:00", "temperature": 25.0},
        {"timestamp": "2026-03-01T12:00:00+00:00", "ph": 7.1},
    ],
}


def _write(tmp_path: Path, name: str, payload: object) -> Path:
    p = tmp_path / name
    p.write_text(json.dumps(payload), encoding="utf-8")
    return p


def test_validate_raises_when_root_missing(tmp_path: Path) -> None:
    missing = tmp_path / "noexiste"
    src = ApplianceSource(AppliancePaths(root=missing))
    with pytest.raises(FileNotFoundError, match=str(missing)):
        src.validate()


def test_newest_json_raises_when_no_files(tmp_path: Path) -> None:
    src = ApplianceSource(AppliancePaths(root=tmp_path))
    with pytest.raises(FileNotFoundError, match="No telemetry_"):
        src.newest_json()


def test_newest_json_ignores_other_files(tmp_path: Path) -> None:
    (tmp_path / "notes.json").write_text("{}", encoding="utf-8")
    p = _write(tmp_path, "telemetry_2026-03-01.json", {})
    src = ApplianceSource(AppliancePaths(root=tmp_path))
    assert src.newest_json() == p


def test_load_snapshot_parses_sections(tmp_path: Path) -> None:
    p = _write(tmp_path, "telemetry_a.json", TELEMETRY)
    snapshot = ApplianceSource(AppliancePaths(root=tmp_path)).load_snapshot(p)

    assert snapshot.reading is not None
    assert snapshot.reading.temperature == 25.4
    assert snapshot.status is not None
    assert snapshot.status.food_level == 64
    # Non-object items are dropped; the entry without timestamp is kept
    assert len(snapshot.history) == 2
    assert snapshot.history[0].consumption.food_level_end == 64
    assert len(snapshot.hourly) == 2


def test_load_snapshot_missing_sections_stay_empty(tmp_path: Path) -> None:
    p = _write(tmp_path, "telemetry_b.json", {"containers": {"foodLevel": 10}})
    snapshot = ApplianceSource(AppliancePaths(root=tmp_path)).load_snapshot(p)
    assert snapshot.reading is None
    assert snapshot.history == ()
    assert snapshot.hourly == ()


def test_load_snapshot_not_object_raises(tmp_path: Path) -> None:
    p = _write(tmp_path, "telemetry_c.json", [1, 2, 3])
    src = ApplianceSource(AppliancePaths(root=tmp_path))
    with pytest.raises(ValueError, match="must be an object"):
        src.load_snapshot(p)


def test_load_snapshot_invalid_json_raises(tmp_path: Path) -> None:
    p = tmp_path / "telemetry_d.json"
    p.write_text("not json", encoding="utf-8")
    src = ApplianceSource(AppliancePaths(root=tmp_path))
    with pytest.raises(json.JSONDecodeError):
        src.load_snapshot(p)


def test_extract_json_object_with_leading_garbage() -> None:
    text = (
        "0.594510(   +0.000000):info: sensor bridge ready\n"
        '{"containers": {"foodLevel": 50}}'
    )
    raw = _extract_json_object(text)
    assert raw == {"containers": {"foodLevel": 50}}


def test_publish_snapshot_writes_documents(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    p = _write(tmp_path, "telemetry_a.json", TELEMETRY)
    snapshot = ApplianceSource(AppliancePaths(root=tmp_path)).load_snapshot(p)

    # live + containers + 1 dated history day + 2 hourly samples
    assert publish_snapshot(store, snapshot) == 5
    assert store.get("container-levels", "status") == {
        "foodLevel": 64.0,
        "phSolutionLevel": 48.0,
    }
    day = store.get("water-history", "2026-02-28")
    assert day is not None
    assert day["temp"] == 25.1
    assert store.get("hourly-water-quality", "2026-03-01T11") is not None


def test_publish_snapshot_twice_does_not_duplicate(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    p = _write(tmp_path, "telemetry_a.json", TELEMETRY)
    snapshot = ApplianceSource(AppliancePaths(root=tmp_path)).load_snapshot(p)
    publish_snapshot(store, snapshot)
    publish_snapshot(store, snapshot)
    assert len(store.query_recent("water-history", limit=10)) == 1
    assert len(store.query_recent("hourly-water-quality", limit=10)) == 2


def test_publish_empty_snapshot(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    assert publish_snapshot(store, ApplianceSnapshot()) == 0
