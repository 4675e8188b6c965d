"""Modelos tipados para lecturas del acuario, contenedores e historial."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Consumable(Enum):
    """Consumables tracked by the appliance containers."""

    FOOD = "food"
    PH_SOLUTION = "ph_solution"


@dataclass(frozen=True)
class SensorReading:
    """Snapshot of the live sensor values."""

    temperature: float | None = None
    turbidity: float | None = None
    ph: float | None = None
    observed_at: datetime | None = None


@dataclass(frozen=True)
class DailyConsumptionRecord:
    """Container levels at the start and end of one day."""

    food_level_start: float | None = None
    food_level_end: float | None = None
    ph_level_start: float | None = None
    ph_level_end: float | None = None

    def levels(self, consumable: Consumable) -> tuple[float | None, float | None]:
        """Return the (start, end) pair for one consumable."""
        if consumable is Consumable.FOOD:
            return self.food_level_start, self.food_level_end
        return self.ph_level_start, self.ph_level_end


@dataclass(frozen=True)
class ContainerStatus:
    """Current fill state, in percent."""

    food_level: float = 0.0
    ph_solution_level: float = 0.0

    def level(self, consumable: Consumable) -> float:
        if consumable is Consumable.FOOD:
            return self.food_level
        return self.ph_solution_level


@dataclass(frozen=True)
class ParameterRange:
    """Acceptable bounds for one water parameter."""

    min: float
    max: float


@dataclass(frozen=True)
class WaterQualityRanges:
    """Acceptable bounds for every monitored parameter."""

    temperature: ParameterRange
    turbidity: ParameterRange
    ph: ParameterRange


@dataclass(frozen=True)
class WaterSafety:
    """Outcome of a water safety evaluation."""

    safe: bool
    violations: frozenset[str]
    message: str


@dataclass(frozen=True)
class SupplyEstimate:
    """Estimated days left per consumable (None: not enough usage data)."""

    food_days: int | None = None
    ph_days: int | None = None


@dataclass(frozen=True)
class HistoryEntry:
    """One day of the water history log."""

    timestamp: datetime | None
    temperature: float | None = None
    turbidity: float | None = None
    ph: float | None = None
    feeding_times: tuple[datetime, ...] = ()
    ph_balancer_triggered: bool = False
    auto_feeding_enabled: bool | None = None
    auto_ph_enabled: bool | None = None
    consumption: DailyConsumptionRecord = field(
        default_factory=DailyConsumptionRecord
    )


@dataclass(frozen=True)
class HourlyPoint:
    """One hourly water quality sample."""

    timestamp: datetime | None
    temperature: float | None = None
    ph: float | None = None
    turbidity: float | None = None


@dataclass(frozen=True)
class FeedingSchedule:
    """One feeding slot (1 or 2)."""

    slot: int
    time: datetime | None = None
    grams: float = 0.0

    @property
    def is_set(self) -> bool:
        return self.time is not None


@dataclass(frozen=True)
class AutomationSettings:
    """Automation switches, feeding slots and last trigger times."""

    feeding_enabled: bool = False
    ph_balancer_enabled: bool = False
    schedules: tuple[FeedingSchedule, ...] = (
        FeedingSchedule(slot=1),
        FeedingSchedule(slot=2),
    )
    feeding_last_triggered: datetime | None = None
    ph_last_triggered: datetime | None = None


def coerce_number(value: object) -> float | None:
    """Return value as float, or None when it is not a finite number.

    Booleans, strings and NaN/inf are treated as missing.
    """
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    number = float(value)
    if math.isnan(number) or math.isinf(number):
        return None
    return number
