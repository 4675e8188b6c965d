"""Estimación de días restantes de alimento y solución de pH."""

from __future__ import annotations

import math
from collections.abc import Sequence

from rrj_watch.model import (
    Consumable,
    ContainerStatus,
    DailyConsumptionRecord,
    SupplyEstimate,
    coerce_number,
)

HISTORY_WINDOW_DAYS = 7


def clamp_level(value: object) -> float:
    """Coerce a fill level to a number in [0, 100] (missing -> 0)."""
    number = coerce_number(value)
    if number is None:
        return 0.0
    return max(0.0, min(100.0, number))


def daily_usage(
    record: DailyConsumptionRecord, consumable: Consumable
) -> float | None:
    """Return the day's usage, or None if the day does not count.

    A day counts only when both levels were reported and the level went down;
    a rise means a refill, not negative usage.
    """
    start, end = record.levels(consumable)
    start_num = coerce_number(start)
    end_num = coerce_number(end)
    if start_num is None or end_num is None:
        return None
    delta = start_num - end_num
    if delta <= 0:
        return None
    return delta


def average_daily_usage(
    history: Sequence[DailyConsumptionRecord],
    consumable: Consumable,
    window: int = HISTORY_WINDOW_DAYS,
) -> float | None:
    """Average usage over the qualifying days of the most recent window."""
    deltas = [
        usage
        for usage in (daily_usage(r, consumable) for r in history[:window])
        if usage is not None
    ]
    if not deltas:
        return None
    return sum(deltas) / len(deltas)


def estimate_days_remaining(
    current_level: object,
    history: Sequence[DailyConsumptionRecord],
    consumable: Consumable = Consumable.FOOD,
    window: int = HISTORY_WINDOW_DAYS,
) -> int | None:
    """Estimate whole days left before a container runs out.

    Args:
        current_level: Live percentage-full reading. Missing or non-numeric
            values count as 0.
        history: Daily records, most recent first.
        consumable: Which container pair to read from each record.
        window: How many of the most recent records to average.

    Returns:
        Days remaining rounded half up, or None when there is no usage data.
    """
    average = average_daily_usage(history, consumable, window)
    if average is None or average <= 0:
        return None
    level = coerce_number(current_level)
    if level is None or level < 0:
        level = 0.0
    return max(0, _round_half_up(level / average))


def estimate_supplies(
    status: ContainerStatus | None,
    history: Sequence[DailyConsumptionRecord],
    window: int = HISTORY_WINDOW_DAYS,
) -> SupplyEstimate:
    """Estimate both consumables from the latest status and history."""
    status = status or ContainerStatus()
    # Same clamped level the dashboard shows
    return SupplyEstimate(
        food_days=estimate_days_remaining(
            clamp_level(status.food_level), history, Consumable.FOOD, window
        ),
        ph_days=estimate_days_remaining(
            clamp_level(status.ph_solution_level),
            history,
            Consumable.PH_SOLUTION,
            window,
        ),
    )


def ph_balancer_activity(record: DailyConsumptionRecord) -> bool | None:
    """True if pH solution was dispensed that day, None if unknown."""
    start = coerce_number(record.ph_level_start)
    end = coerce_number(record.ph_level_end)
    if start is None or end is None:
        return None
    return end < start


def supply_label(days: int | None) -> tuple[str, str]:
    """Display pair (value, caption) for an estimate; None is not zero."""
    if days is None:
        return "?", "Not consumed"
    return str(days), "days"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
