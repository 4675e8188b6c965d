"""Derivaciones del historial: promedios, series para gráficos y tabla de logs."""

from __future__ import annotations

from collections.abc import Sequence

import pandas as pd
from dateutil import tz

from rrj_watch.consumption import ph_balancer_activity
from rrj_watch.model import HistoryEntry, HourlyPoint

_LOCAL_TZ = tz.tzlocal()

PARAMETERS = ("temperature", "turbidity", "ph")

HISTORY_COLUMNS = [
    "timestamp",
    "date",
    "temperature",
    "turbidity",
    "ph",
    "food_level_start",
    "food_level_end",
    "ph_level_start",
    "ph_level_end",
]

LOG_COLUMNS = [
    "date",
    "temperature",
    "turbidity",
    "ph",
    "feeding_status",
    "feeding_times",
    "ph_balancer_status",
    "ph_activity",
    "food_level_start",
    "food_level_end",
    "ph_level_start",
    "ph_level_end",
]


def entries_to_frame(entries: Sequence[HistoryEntry]) -> pd.DataFrame:
    """Convert history entries to a chronological DataFrame (one row per day)."""
    rows = [
        {
            "timestamp": e.timestamp,
            "date": e.timestamp.astimezone(_LOCAL_TZ).date() if e.timestamp else None,
            "temperature": e.temperature,
            "turbidity": e.turbidity,
            "ph": e.ph,
            "food_level_start": e.consumption.food_level_start,
            "food_level_end": e.consumption.food_level_end,
            "ph_level_start": e.consumption.ph_level_start,
            "ph_level_end": e.consumption.ph_level_end,
        }
        for e in entries
    ]
    df = pd.DataFrame(rows, columns=HISTORY_COLUMNS)
    if df.empty:
        return df
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True, errors="coerce")
    for col in HISTORY_COLUMNS[2:]:
        df[col] = pd.to_numeric(df[col], errors="coerce")
    return df.sort_values("timestamp", na_position="first").reset_index(drop=True)


def _parameter_means(df: pd.DataFrame) -> dict[str, float | None]:
    out: dict[str, float | None] = {}
    for name in PARAMETERS:
        if df.empty or name not in df.columns:
            out[name] = None
            continue
        mean = pd.to_numeric(df[name], errors="coerce").mean()
        out[name] = None if pd.isna(mean) else round(float(mean), 1)
    return out


def daily_averages(entries: Sequence[HistoryEntry]) -> dict[str, float | None]:
    """Average temperature, turbidity and pH over the history window.

    Days that did not report a parameter are left out of that parameter's
    average. Values are rounded to one decimal.
    """
    return _parameter_means(entries_to_frame(entries))


def hourly_averages(points: Sequence[HourlyPoint]) -> dict[str, float | None]:
    """Average of each parameter over the hourly samples (last 24h)."""
    df = pd.DataFrame(
        [
            {"temperature": p.temperature, "turbidity": p.turbidity, "ph": p.ph}
            for p in points
        ],
        columns=list(PARAMETERS),
    )
    return _parameter_means(df)


def chart_series(entries: Sequence[HistoryEntry]) -> pd.DataFrame:
    """Chronological series with a short date label per day."""
    df = entries_to_frame(entries)
    if df.empty:
        return pd.DataFrame(columns=["label", *PARAMETERS])
    labels = [
        _short_label(ts) if not pd.isna(ts) else "N/A" for ts in df["timestamp"]
    ]
    out = df.loc[:, list(PARAMETERS)].copy()
    out.insert(0, "label", labels)
    return out


def _short_label(ts: pd.Timestamp) -> str:
    local = ts.tz_convert(_LOCAL_TZ)
    return f"{local.strftime('%b')} {local.day}"


def format_clock(value: object) -> str:
    """Format a datetime as ``hh:mm AM`` in local time."""
    if value is None or not hasattr(value, "astimezone"):
        return ""
    return value.astimezone(_LOCAL_TZ).strftime("%I:%M %p")


def _status_label(enabled: bool | None) -> str:
    if enabled is None:
        return "N/A"
    return "Enabled" if enabled else "Disabled"


def _activity_label(entry: HistoryEntry) -> str:
    triggered = ph_balancer_activity(entry.consumption)
    if triggered is None:
        return "N/A"
    return "Triggered" if triggered else "Not Triggered"


def history_log_frame(entries: Sequence[HistoryEntry]) -> pd.DataFrame:
    """Day-by-day log table, most recent day first.

    Args:
        entries: History entries (any order).

    Returns:
        DataFrame with LOG_COLUMNS. Missing values stay NA so the export can
        leave the cell empty.
    """
    ordered = sorted(
        entries,
        key=lambda e: e.timestamp.timestamp() if e.timestamp else float("-inf"),
        reverse=True,
    )
    rows: list[dict[str, object]] = []
    for e in ordered:
        times = [format_clock(t) for t in e.feeding_times]
        times = [t for t in times if t]
        record = e.consumption
        rows.append(
            {
                "date": e.timestamp.astimezone(_LOCAL_TZ).date()
                if e.timestamp
                else pd.NA,
                "temperature": e.temperature,
                "turbidity": e.turbidity,
                "ph": e.ph,
                "feeding_status": _status_label(e.auto_feeding_enabled),
                "feeding_times": ", ".join(times) if times else "No automated feeding",
                "ph_balancer_status": _status_label(e.auto_ph_enabled),
                "ph_activity": _activity_label(e),
                "food_level_start": record.food_level_start,
                "food_level_end": record.food_level_end,
                "ph_level_start": record.ph_level_start,
                "ph_level_end": record.ph_level_end,
            }
        )
    if not rows:
        return pd.DataFrame(columns=LOG_COLUMNS)
    return pd.DataFrame(rows, columns=LOG_COLUMNS)
