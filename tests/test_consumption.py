from dispensim.fleet.catalog import PROFILES
from dispensim.fleet.consumption import (
    CONSUMPTION_RATES,
    consumption_rate,
    max_consumption_per_tick,
    period_for_hour,
)


def test_periods_by_hour():
    assert period_for_hour(8) == "peak"
    assert period_for_hour(18) == "peak"
    assert period_for_hour(3) == "low"
    assert period_for_hour(23) == "low"
    assert period_for_hour(10) == "normal"
    assert period_for_hour(24) == "low"


def test_every_profile_has_rates_in_order():
    assert set(CONSUMPTION_RATES) == set(PROFILES)
    for rates in CONSUMPTION_RATES.values():
        assert rates["peak"] > rates["normal"] > rates["low"] > 0


def test_lookup_and_fallback():
    assert consumption_rate("DIESEL_DISPENSER", 8) == CONSUMPTION_RATES["DIESEL_DISPENSER"]["peak"]
    assert consumption_rate("UNKNOWN", 10) == CONSUMPTION_RATES["RO_WATER"]["normal"]


def test_ceiling_covers_jittered_peak():
    assert max_consumption_per_tick() == max(r["peak"] for r in CONSUMPTION_RATES.values()) * 1.2
