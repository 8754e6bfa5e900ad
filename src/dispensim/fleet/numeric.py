# fleet/numeric.py
from __future__ import annotations

import math
import random
from typing import Optional


# default clamp function
def clamp(x: float, lo: float, hi: float) -> float:
    return lo if x < lo else hi if x > hi else x


def rand(rng: random.Random, lo: float, hi: float, decimals: int = 2) -> float:
    return round(rng.uniform(lo, hi), decimals)


def rand_int(rng: random.Random, lo: int, hi: int) -> int:
    # inclusive on both ends
    return rng.randint(lo, hi)


def gaussian(rng: random.Random, mean: float, std: float) -> float:
    # Box-Muller; 1 - random() keeps log() away from zero
    u1 = 1.0 - rng.random()
    u2 = rng.random()
    z0 = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
    return mean + z0 * std


def smooth_towards(prev: Optional[float], target: float, fraction: float = 0.08) -> float:
    """
    Exponential smoothing: move prev a fraction of the way to target.
    With no previous value the target is taken as-is (first tick).
    """
    if prev is None:
        return target
    return prev + (target - prev) * fraction


def bernoulli(rng: random.Random, p: float) -> bool:
    return rng.random() < p
