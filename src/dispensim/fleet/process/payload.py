# fleet/process/payload.py
from __future__ import annotations

import itertools
import random
from datetime import datetime
from typing import Any, Dict, Iterator, List

from ...util import utc_iso
from ..catalog import MachineDefinition, SimulationProfile
from ..numeric import bernoulli, rand_int, smooth_towards
from ..state import Session, TankState
from .machine import MachineProcess
from .tank import MS_PER_DAY, TankProcess


def alarm_severity(alert: str) -> str:
    return "WARNING" if ("HIGH" in alert or "LOW" in alert) else "INFO"


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class PayloadAssembler:
    """
    One simulation tick for one machine.

    Tanks are evolved and committed to the session first, then the machine,
    so every aggregate below reads committed state only.
    """

    EFFICIENCY_PCT = (75.0, 98.0)
    EFFICIENCY_FRACTION = 0.02
    DOWNTIME_PROBABILITY = 0.02
    DOWNTIME_MINUTES = (1, 5)

    def __init__(
        self,
        rng: random.Random | None = None,
        alarm_ids: Iterator[int] | None = None,
        firmware_version: str = "3.2.1",
    ):
        self._rng = rng or random.Random()
        self._alarm_ids = alarm_ids if alarm_ids is not None else itertools.count(1)
        self.firmware_version = firmware_version

        self.tank_process = TankProcess(self._rng)
        self.machine_process = MachineProcess(self._rng)

    # ======================================================
    # MAIN STEP
    # ======================================================
    def tick(
        self,
        machine: MachineDefinition,
        profile: SimulationProfile,
        session: Session,
        now: datetime,
    ) -> Dict[str, Any]:
        ts = utc_iso(now)
        interval_ms = session.interval_ms

        # 1) tanks, committed one by one in catalog order
        for tank_id, tank in machine.tank_configuration.items():
            session.tanks[tank_id] = self.tank_process.evolve(
                tank_id,
                tank,
                session.tanks.get(tank_id),
                tank.is_gas,
                session.profile,
                interval_ms,
                now,
            )
        tanks: List[TankState] = [session.tanks[t] for t in machine.tank_configuration]

        # 2) machine
        session.machine = self.machine_process.evolve(profile, session.machine)
        ms = session.machine

        # 3) uptime is a running sum of intervals
        session.uptime_seconds += int(round(interval_ms / 1000.0))

        # 4) countdowns
        day_fraction = interval_ms / MS_PER_DAY
        session.machine_next_service_days = max(0.0, session.machine_next_service_days - day_fraction)
        session.filter_replacement_due_days = max(0.0, session.filter_replacement_due_days - day_fraction)
        session.calibration_due_days = max(0.0, session.calibration_due_days - day_fraction)

        # 5) production
        session.efficiency_percent = smooth_towards(
            session.efficiency_percent,
            self._rng.uniform(*self.EFFICIENCY_PCT),
            self.EFFICIENCY_FRACTION,
        )
        if bernoulli(self._rng, self.DOWNTIME_PROBABILITY):
            session.downtime_minutes_today += rand_int(self._rng, *self.DOWNTIME_MINUTES)

        payload: Dict[str, Any] = {
            "machine_id": machine.id,
            "timestamp": ts,
            "sequence": session.sequence + 1,
            "machine_info": {
                "id": machine.id,
                "name": machine.name,
                "location": machine.location,
                "profile": session.profile,
                "profile_name": profile.name,
            },
            "tanks": {t.tank_id: t.to_dict() for t in tanks},
            "machine_sensors": ms.to_dict(),
            "aggregated_data": self._aggregate(tanks),
            "health": {
                "overall_status": ms.system_status,
                "uptime_seconds": session.uptime_seconds,
                "connection_state": ms.network_status,
                "firmware_version": self.firmware_version,
                "last_boot": session.created_at,
                "error_count": ms.error_count_today,
                "warning_count": ms.warning_count_today,
            },
            "alarms": self._alarms(tanks, ts),
            "maintenance": {
                "upcoming_tasks": [
                    {
                        "tank_id": t.tank_id,
                        "task": "Routine Cleaning",
                        "due_in_days": round(t.next_maintenance_days, 2),
                        "last_performed": t.last_cleaned,
                    }
                    for t in tanks
                ],
                "machine_next_service_days": round(session.machine_next_service_days, 2),
                "filter_replacement_due_days": round(session.filter_replacement_due_days, 2),
                "calibration_due_days": round(session.calibration_due_days, 2),
            },
            "production_stats": {
                "daily_production_liters": round(sum(t.total_flow_today_liters for t in tanks), 2),
                "efficiency_percent": round(session.efficiency_percent, 2),
                "downtime_minutes_today": session.downtime_minutes_today,
                "cycles_completed": ms.cycles_completed_today,
                "quality_index_average": round(_mean([t.quality_index_percent for t in tanks]), 2),
            },
        }

        # 6) commit
        session.sequence = payload["sequence"]
        session.updated_at = ts
        session.history.append(payload)
        return payload

    # ======================================================
    # Helpers
    # ======================================================
    @staticmethod
    def _aggregate(tanks: List[TankState]) -> Dict[str, Any]:
        total_volume = sum(t.volume_liters for t in tanks)
        total_capacity = sum(float(t.capacity_liters) for t in tanks)
        return {
            "total_tanks": len(tanks),
            "total_volume_liters": round(total_volume, 2),
            "total_capacity_liters": total_capacity,
            "overall_fill_percent": round(total_volume / total_capacity * 100.0, 2) if total_capacity > 0 else 0.0,
            # counted before per-tick dedup
            "active_alert_count": sum(len(t.alerts) for t in tanks),
            "tanks_below_20_percent": sum(1 for t in tanks if t.level_percent < 20),
            "average_tank_temperature": round(_mean([t.temperature_celsius for t in tanks]), 2),
            "total_flow_rate_lpm": round(sum(t.flow_rate_lpm for t in tanks), 2),
        }

    def _alarms(self, tanks: List[TankState], ts: str) -> List[Dict[str, Any]]:
        alarms: List[Dict[str, Any]] = []
        seen = set()
        for t in tanks:
            for alert in t.alerts:
                key = (t.tank_id, alert)
                if key in seen:
                    continue
                seen.add(key)
                alarms.append(
                    {
                        "id": f"ALM-{next(self._alarm_ids):08d}",
                        "severity": alarm_severity(alert),
                        "tank_id": t.tank_id,
                        "type": alert,
                        "message": f"{alert.replace('_', ' ')} detected in {t.product_name}",
                        "timestamp": ts,
                    }
                )
        return alarms
