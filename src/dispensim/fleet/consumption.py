# fleet/consumption.py
from __future__ import annotations

from typing import Dict, Literal

Period = Literal["peak", "normal", "low"]

PEAK_HOURS = frozenset({7, 8, 9, 12, 13, 17, 18, 19})
LOW_HOURS = frozenset({0, 1, 2, 3, 4, 5, 22, 23})

# percent of tank capacity drawn per tick
CONSUMPTION_RATES: Dict[str, Dict[Period, float]] = {
    "RO_WATER": {"peak": 0.40, "normal": 0.20, "low": 0.05},
    "MILK_MACHINE": {"peak": 0.45, "normal": 0.25, "low": 0.05},
    "JUICE_SODA_MACHINE": {"peak": 0.50, "normal": 0.25, "low": 0.08},
    "DIESEL_DISPENSER": {"peak": 0.35, "normal": 0.15, "low": 0.02},
}
FALLBACK_PROFILE = "RO_WATER"

JITTER_MIN = 0.8
JITTER_MAX = 1.2


def period_for_hour(hour: int) -> Period:
    hour = int(hour) % 24
    if hour in PEAK_HOURS:
        return "peak"
    if hour in LOW_HOURS:
        return "low"
    return "normal"


def consumption_rate(profile_key: str, hour: int) -> float:
    table = CONSUMPTION_RATES.get(profile_key, CONSUMPTION_RATES[FALLBACK_PROFILE])
    return table[period_for_hour(hour)]


def max_consumption_per_tick() -> float:
    # upper bound of a jittered draw across every profile
    return max(r["peak"] for r in CONSUMPTION_RATES.values()) * JITTER_MAX
