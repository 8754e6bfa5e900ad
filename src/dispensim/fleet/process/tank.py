# fleet/process/tank.py
from __future__ import annotations

import random
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from ...util import utc_iso
from ..catalog import TankDefinition
from ..consumption import JITTER_MAX, JITTER_MIN, consumption_rate
from ..numeric import bernoulli, clamp, gaussian, rand_int, smooth_towards
from ..state import TankState
from ..transitions import INLET_VALVE, OUTLET_VALVE, PUMP

MS_PER_MINUTE = 60_000.0
MS_PER_DAY = 86_400_000.0

Range = Tuple[float, float]


def tank_alerts(level_percent: float, temperature: float, contamination_ppm: float,
                pressure_bar: float, is_gas: bool) -> List[str]:
    alerts: List[str] = []
    if level_percent < 20:
        alerts.append("LOW_LEVEL")
    if level_percent > 95:
        alerts.append("HIGH_LEVEL")
    if temperature > 20:
        alerts.append("HIGH_TEMPERATURE")
    if contamination_ppm > 3:
        alerts.append("CONTAMINATION_DETECTED")
    if pressure_bar > (140 if is_gas else 4.5):
        alerts.append("HIGH_PRESSURE")
    return alerts


class TankProcess:
    """
    Advances one tank snapshot by one tick.

    Level falls with the time-of-day consumption rate and may snap back on a
    refill; every other sensor is smoothed from its previous value toward a
    freshly sampled target, so nothing but the refill jumps between ticks.
    """

    # Level / refill
    SEED_LEVEL_PCT: Range = (70.0, 95.0)
    REFILL_BELOW_PCT = 15.0
    REFILL_PROBABILITY = 0.3
    REFILL_LEVEL_PCT: Range = (90.0, 95.0)

    # Flow
    FLOW_MIN_LEVEL_PCT = 10.0
    ACTIVE_FLOW_LPM = 0.5

    # name -> (liquid target range, gas target range or None, smoothing fraction)
    ENVIRONMENT: Dict[str, Tuple[Range, Optional[Range], float]] = {
        "temperature_celsius": ((2.0, 25.0), (-5.0, 10.0), 0.05),
        "pressure_bar": ((0.5, 5.0), (50.0, 150.0), 0.05),
        "humidity_percent": ((30.0, 70.0), None, 0.05),
        "conductivity_ms_cm": ((0.5, 2.5), None, 0.03),
        "turbidity_ntu": ((0.1, 5.0), None, 0.05),
        "dissolved_oxygen_mg_l": ((5.0, 9.0), None, 0.03),
        "quality_index_percent": ((85.0, 100.0), None, 0.03),
        "contamination_ppm": ((0.0, 5.0), None, 0.05),
        "ph_level": ((6.5, 8.5), None, 0.02),
    }

    # name -> (target range, smoothing fraction, decimals; 0 means int)
    PUMP_READINGS: Dict[str, Tuple[Range, float, int]] = {
        "pump_speed_rpm": ((800.0, 3000.0), 0.1, 0),
        "pump_power_watts": ((200.0, 1500.0), 0.1, 0),
        "pump_efficiency_percent": ((75.0, 95.0), 0.05, 2),
        "pump_vibration_mm_s": ((0.5, 5.0), 0.1, 2),
    }
    # drawn around the middle of the band instead of uniformly
    GAUSSIAN_READINGS = frozenset({"pump_vibration_mm_s"})

    PARTIAL_VALVE_PCT = (20, 80)

    # Maintenance
    MAINTENANCE_DAYS: Range = (30.0, 90.0)
    LAST_CLEANED_DAYS_AGO = (1, 30)

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng or random.Random()

    # ======================================================
    # MAIN STEP
    # ======================================================
    def evolve(
        self,
        tank_id: str,
        tank: TankDefinition,
        previous: Optional[TankState],
        is_gas: bool,
        profile_key: str,
        interval_ms: float,
        now: datetime,
    ) -> TankState:
        rng = self._rng
        interval_ms = float(interval_ms)
        capacity = float(tank.capacity_liters)

        level, rate = self._next_level(previous, profile_key, now.hour)
        volume = round(level / 100.0 * capacity, 2)

        env = self._environment(previous, is_gas)

        # flow follows what was actually drawn from the tank this tick
        if level > self.FLOW_MIN_LEVEL_PCT and rate > 0.0:
            consumed_liters = rate / 100.0 * capacity
            flow = round(consumed_liters * MS_PER_MINUTE / interval_ms, 2)
        else:
            flow = 0.0
        prev_total = previous.total_flow_today_liters if previous else 0.0
        total_flow = round(prev_total + flow * interval_ms / MS_PER_MINUTE, 2)

        if flow > 5:
            direction = "outbound"
        elif flow > 0.5:
            direction = "inbound"
        else:
            direction = "static"

        inlet, inlet_pos, outlet, outlet_pos = self._valves(previous, flow)
        pump = self._pump(previous, flow)

        if previous is None:
            next_maintenance = rng.uniform(*self.MAINTENANCE_DAYS)
            days_ago = rand_int(rng, *self.LAST_CLEANED_DAYS_AGO)
            last_cleaned = utc_iso(now - timedelta(days=days_ago))
        else:
            next_maintenance = max(0.0, previous.next_maintenance_days - interval_ms / MS_PER_DAY)
            last_cleaned = previous.last_cleaned

        alerts = tank_alerts(
            level,
            env["temperature_celsius"],
            env["contamination_ppm"],
            env["pressure_bar"],
            is_gas,
        )

        return TankState(
            tank_id=tank_id,
            product_name=tank.product,
            capacity_liters=tank.capacity_liters,
            is_gas=is_gas,
            level_percent=level,
            volume_liters=volume,
            volume_remaining_liters=volume,
            empty_in_hours=round(volume / (flow or 1.0), 2) if volume > 0 else 0.0,
            flow_rate_lpm=flow,
            total_flow_today_liters=total_flow,
            flow_direction=direction,
            inlet_valve_status=inlet,
            inlet_valve_position_percent=inlet_pos,
            outlet_valve_status=outlet,
            outlet_valve_position_percent=outlet_pos,
            last_cleaned=last_cleaned,
            next_maintenance_days=next_maintenance,
            alerts=alerts,
            last_updated=utc_iso(now),
            **env,
            **pump,
        )

    def clean(self, state: TankState, now: datetime) -> TankState:
        # explicit service: the only way the countdown goes back up
        return replace(
            state,
            last_cleaned=utc_iso(now),
            next_maintenance_days=self._rng.uniform(*self.MAINTENANCE_DAYS),
        )

    # ======================================================
    # Level
    # ======================================================
    def _next_level(self, previous: Optional[TankState], profile_key: str, hour: int) -> Tuple[float, float]:
        rng = self._rng

        if previous is None:
            level = rng.uniform(*self.SEED_LEVEL_PCT)
            rate = 0.0
        else:
            rate = consumption_rate(profile_key, hour) * rng.uniform(JITTER_MIN, JITTER_MAX)
            level = previous.level_percent - rate

        # restock
        if level < self.REFILL_BELOW_PCT and bernoulli(rng, self.REFILL_PROBABILITY):
            level = rng.uniform(*self.REFILL_LEVEL_PCT)

        return round(clamp(level, 0.0, 100.0), 2), rate

    # ======================================================
    # Environment / quality
    # ======================================================
    def _environment(self, previous: Optional[TankState], is_gas: bool) -> Dict[str, float]:
        out: Dict[str, float] = {}
        for name, (liquid, gas, fraction) in self.ENVIRONMENT.items():
            lo, hi = gas if (is_gas and gas is not None) else liquid
            prev = getattr(previous, name) if previous else None
            target = self._rng.uniform(lo, hi)
            out[name] = round(smooth_towards(prev, target, fraction), 2)
        return out

    # ======================================================
    # Valves / pump
    # ======================================================
    def _valves(self, previous: Optional[TankState], flow: float) -> Tuple[str, int, str, int]:
        rng = self._rng

        prev_inlet = previous.inlet_valve_status if previous else None
        inlet = INLET_VALVE.step(prev_inlet, rng)

        prev_outlet = previous.outlet_valve_status if previous else None
        if flow > self.ACTIVE_FLOW_LPM:
            outlet = "open"
        else:
            outlet = OUTLET_VALVE.step(prev_outlet, rng)

        inlet_pos = self._valve_position(
            inlet, prev_inlet, previous.inlet_valve_position_percent if previous else None
        )
        outlet_pos = self._valve_position(
            outlet, prev_outlet, previous.outlet_valve_position_percent if previous else None
        )
        return inlet, inlet_pos, outlet, outlet_pos

    def _valve_position(self, status: str, prev_status: Optional[str], prev_position: Optional[int]) -> int:
        if status == "open":
            return 100
        if status == "closed":
            return 0
        if prev_status == "partial" and prev_position is not None:
            return prev_position
        return rand_int(self._rng, *self.PARTIAL_VALVE_PCT)

    def _pump(self, previous: Optional[TankState], flow: float) -> Dict[str, object]:
        rng = self._rng

        prev_status = previous.pump_status if previous else None
        if flow > self.ACTIVE_FLOW_LPM:
            status = "running"
        else:
            status = PUMP.step(prev_status, rng)

        out: Dict[str, object] = {"pump_status": status}
        was_running = prev_status == "running"

        for name, ((lo, hi), fraction, decimals) in self.PUMP_READINGS.items():
            if status != "running":
                out[name] = 0 if decimals == 0 else 0.0
                continue
            prev = getattr(previous, name) if was_running else None
            if name in self.GAUSSIAN_READINGS:
                target = clamp(gaussian(rng, (lo + hi) / 2.0, (hi - lo) / 6.0), lo, hi)
            else:
                target = rng.uniform(lo, hi)
            value = smooth_towards(prev, target, fraction)
            out[name] = int(round(value)) if decimals == 0 else round(value, decimals)
        return out
