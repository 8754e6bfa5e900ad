# fleet/process/machine.py
from __future__ import annotations

import random
from typing import Dict, Optional, Tuple

from ..catalog import SimulationProfile
from ..numeric import bernoulli, rand_int, smooth_towards
from ..state import CONNECTION_STATES, SYSTEM_STATUSES, MachineState
from ..transitions import Transition

SYSTEM_STATUS = Transition(0.05, SYSTEM_STATUSES, "operational")
NETWORK_STATUS = Transition(0.03, CONNECTION_STATES, "online")


class MachineProcess:
    # name -> (target range, smoothing fraction, decimals; 0 means int)
    READINGS: Dict[str, Tuple[Tuple[float, float], float, int]] = {
        "voltage_primary": ((200.0, 240.0), 0.05, 2),
        "voltage_secondary": ((22.0, 26.0), 0.05, 2),
        "current_amps": ((5.0, 50.0), 0.05, 2),
        "power_consumption_kw": ((1.0, 15.0), 0.05, 2),
        "power_factor": ((0.85, 0.98), 0.02, 3),
        "frequency_hz": ((49.5, 50.5), 0.05, 2),
        "ambient_temperature_celsius": ((18.0, 35.0), 0.02, 2),
        "cabinet_temperature_celsius": ((25.0, 45.0), 0.03, 2),
        "ambient_humidity_percent": ((30.0, 70.0), 0.03, 2),
        "controller_cpu_percent": ((10.0, 60.0), 0.1, 2),
        "controller_memory_percent": ((20.0, 70.0), 0.05, 2),
        "controller_temperature_celsius": ((35.0, 65.0), 0.05, 2),
        "signal_strength_dbm": ((-95.0, -40.0), 0.05, 0),
        "packet_loss_percent": ((0.0, 5.0), 0.05, 2),
        "latency_ms": ((10.0, 200.0), 0.1, 0),
    }

    # name -> (seed range, per-tick probability, increment range)
    COUNTERS: Dict[str, Tuple[Tuple[int, int], float, Tuple[int, int]]] = {
        "total_runtime_hours": ((1000, 50000), 0.02, (1, 1)),
        "cycles_completed_today": ((10, 100), 0.3, (1, 3)),
        "error_count_today": ((0, 2), 0.01, (1, 1)),
        "warning_count_today": ((0, 5), 0.03, (1, 1)),
    }

    DOOR_OPEN_PROBABILITY = 0.02

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng or random.Random()

    def evolve(self, profile: SimulationProfile, previous: Optional[MachineState]) -> MachineState:
        rng = self._rng

        readings: Dict[str, object] = {}
        for name, ((lo, hi), fraction, decimals) in self.READINGS.items():
            prev = getattr(previous, name) if previous else None
            value = smooth_towards(prev, rng.uniform(lo, hi), fraction)
            readings[name] = int(round(value)) if decimals == 0 else round(value, decimals)

        counters: Dict[str, int] = {}
        for name, (seed, p, (inc_lo, inc_hi)) in self.COUNTERS.items():
            if previous is None:
                counters[name] = rand_int(rng, *seed)
                continue
            value = getattr(previous, name)
            if bernoulli(rng, p):
                value += rand_int(rng, inc_lo, inc_hi)
            counters[name] = value

        door = "OPEN" if bernoulli(rng, self.DOOR_OPEN_PROBABILITY) else "CLOSED"

        return MachineState(
            system_status=SYSTEM_STATUS.step(previous.system_status if previous else None, rng),
            operating_mode=profile.operating_mode,
            network_status=NETWORK_STATUS.step(previous.network_status if previous else None, rng),
            emergency_stop_status="RELEASED",
            door_interlock_status=door,
            safety_relay_status="OK",
            ground_fault_status="OK",
            **readings,
            **counters,
        )
