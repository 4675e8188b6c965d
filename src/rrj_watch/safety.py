"""Evaluación de seguridad del agua a partir de la lectura en vivo."""

from __future__ import annotations

from datetime import datetime, timedelta

from dateutil import tz

from rrj_watch.model import (
    ParameterRange,
    SensorReading,
    WaterQualityRanges,
    WaterSafety,
    coerce_number,
)

DEFAULT_RANGES = WaterQualityRanges(
    temperature=ParameterRange(min=22.0, max=28.0),
    turbidity=ParameterRange(min=0.0, max=10.0),
    ph=ParameterRange(min=6.5, max=7.5),
)

FRESHNESS_WINDOW = timedelta(minutes=5)

MSG_OFFLINE = "System offline"
MSG_AWAITING = "Awaiting sensor data…"
MSG_SAFE = "Water is safe for fish."


def is_online(
    observed_at: datetime | None,
    now: datetime | None = None,
    window: timedelta = FRESHNESS_WINDOW,
) -> bool:
    """Return True if the last reading is younger than the freshness window.

    Naive datetimes are interpreted as UTC.
    """
    if observed_at is None:
        return False
    current = _as_aware(now) if now is not None else datetime.now(tz=tz.UTC)
    return current - _as_aware(observed_at) < window


def evaluate_water_safety(
    reading: SensorReading | None,
    ranges: WaterQualityRanges = DEFAULT_RANGES,
    is_online: bool = True,
) -> WaterSafety:
    """Classify the water as safe or unsafe and list violated parameters.

    Temperature and pH are checked against both bounds. Turbidity only has an
    upper bound: clear water is never a problem.
    """
    if not is_online:
        return WaterSafety(safe=False, violations=frozenset(), message=MSG_OFFLINE)

    reading = reading or SensorReading()
    temperature = coerce_number(reading.temperature)
    turbidity = coerce_number(reading.turbidity)
    ph = coerce_number(reading.ph)
    if temperature is None or turbidity is None or ph is None:
        return WaterSafety(safe=False, violations=frozenset(), message=MSG_AWAITING)

    issues: list[str] = []
    if _outside(temperature, ranges.temperature):
        issues.append("temperature")
    if turbidity > ranges.turbidity.max:
        issues.append("turbidity")
    if _outside(ph, ranges.ph):
        issues.append("pH")

    if not issues:
        return WaterSafety(safe=True, violations=frozenset(), message=MSG_SAFE)
    return WaterSafety(
        safe=False,
        violations=frozenset(issues),
        message=f"Warning: Unsafe {', '.join(issues)} level(s).",
    )


def _outside(value: float, bounds: ParameterRange) -> bool:
    return value < bounds.min or value > bounds.max


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=tz.UTC)
    return value
