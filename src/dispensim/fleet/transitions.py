# fleet/transitions.py
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional, Tuple

from .numeric import bernoulli


@dataclass(frozen=True)
class Transition:
    """
    Low-frequency discrete state: hold the previous value, and with
    `probability` per tick jump to a value drawn uniformly from `choices`.
    """

    probability: float
    choices: Tuple[str, ...]
    default: str

    def step(self, previous: Optional[str], rng: random.Random) -> str:
        current = previous if previous is not None else self.default
        if bernoulli(rng, self.probability):
            return rng.choice(self.choices)
        return current


VALVE_STATES = ("open", "closed", "partial")
PUMP_STATES = ("running", "idle", "fault", "maintenance")

INLET_VALVE = Transition(0.05, VALVE_STATES, "open")
OUTLET_VALVE = Transition(0.05, ("partial",), "closed")
PUMP = Transition(0.02, ("idle", "fault", "maintenance"), "idle")
