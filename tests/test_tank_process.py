import random
from dataclasses import replace
from datetime import datetime, timezone

from dispensim.fleet.catalog import TankDefinition
from dispensim.fleet.consumption import max_consumption_per_tick
from dispensim.fleet.process.tank import TankProcess, tank_alerts
from dispensim.util import utc_iso

NOW = datetime(2026, 1, 5, 10, 0, tzinfo=timezone.utc)  # "normal" consumption hour
WATER = TankDefinition(1000, "Water")
CO2 = TankDefinition(50, "CO2 Gas", is_gas=True)


class FixedRandom(random.Random):
    """random() always returns `value`, so uniform(a, b) == a + (b - a) * value."""

    def __init__(self, value):
        super().__init__(0)
        self.value = value

    def random(self):
        return self.value


def first_tick(rng=None, tank=WATER, is_gas=False):
    proc = TankProcess(rng or random.Random(1))
    return proc, proc.evolve("t1", tank, None, is_gas, "RO_WATER", 5000, NOW)


def test_first_tick_seeds_values():
    _, s = first_tick()
    assert 70.0 <= s.level_percent <= 95.0
    assert s.volume_liters == round(s.level_percent / 100 * 1000, 2)
    assert s.flow_rate_lpm == 0.0
    assert s.total_flow_today_liters == 0.0
    assert 30.0 <= s.next_maintenance_days <= 90.0
    assert 2.0 <= s.temperature_celsius <= 25.0
    assert 0.5 <= s.pressure_bar <= 5.0
    assert s.pump_status in ("idle", "fault", "maintenance")
    assert s.pump_speed_rpm == 0
    assert s.pump_power_watts == 0
    assert s.last_updated == utc_iso(NOW)


def test_gas_tank_uses_gas_ranges():
    _, s = first_tick(tank=CO2, is_gas=True)
    assert 50.0 <= s.pressure_bar <= 150.0
    assert -5.0 <= s.temperature_celsius <= 10.0


def test_refill_below_threshold():
    _, s = first_tick()
    low = replace(s, level_percent=10.0)
    proc = TankProcess(FixedRandom(0.0))
    nxt = proc.evolve("t1", WATER, low, False, "RO_WATER", 5000, NOW)
    assert nxt.level_percent == 90.0


def test_no_refill_when_trial_fails():
    _, s = first_tick()
    low = replace(s, level_percent=10.0)
    proc = TankProcess(FixedRandom(0.99))
    nxt = proc.evolve("t1", WATER, low, False, "RO_WATER", 5000, NOW)
    # rate 0.2 x jitter (0.8 + 0.4 x 0.99)
    assert nxt.level_percent == round(10.0 - 0.2 * (0.8 + 0.4 * 0.99), 2)
    # no flow at or below 10 %
    assert nxt.flow_rate_lpm == 0.0


def test_flow_is_derived_from_consumption():
    _, s = first_tick()
    mid = replace(s, level_percent=50.0, total_flow_today_liters=100.0)
    proc = TankProcess(FixedRandom(0.5))
    nxt = proc.evolve("t1", WATER, mid, False, "RO_WATER", 5000, NOW)
    # 0.2 % of 1000 L per 5 s tick
    assert nxt.level_percent == 49.8
    assert nxt.flow_rate_lpm == 24.0
    assert nxt.total_flow_today_liters == 102.0
    assert nxt.flow_direction == "outbound"
    assert nxt.outlet_valve_status == "open"
    assert nxt.outlet_valve_position_percent == 100
    assert nxt.pump_status == "running"
    assert nxt.pump_speed_rpm > 0
    assert nxt.empty_in_hours == round(nxt.volume_liters / 24.0, 2)


def test_evolution_is_continuous_over_many_ticks():
    proc, s = first_tick(random.Random(7))
    ceiling = max_consumption_per_tick() + 0.01
    for _ in range(2000):
        nxt = proc.evolve("t1", WATER, s, False, "RO_WATER", 5000, NOW)

        drop = s.level_percent - nxt.level_percent
        refilled = 90.0 <= nxt.level_percent <= 95.0 and s.level_percent < 15.0 + ceiling
        assert refilled or 0.0 <= drop <= ceiling

        assert nxt.volume_liters == round(nxt.level_percent / 100 * 1000, 2)
        assert nxt.next_maintenance_days <= s.next_maintenance_days
        assert nxt.next_maintenance_days >= 0.0
        for name, ((lo, hi), _, fraction) in TankProcess.ENVIRONMENT.items():
            value = getattr(nxt, name)
            assert lo <= value <= hi
            assert abs(value - getattr(s, name)) <= fraction * (hi - lo) + 0.011, name
        assert nxt.total_flow_today_liters >= s.total_flow_today_liters
        assert nxt.last_cleaned == s.last_cleaned

        if nxt.flow_rate_lpm > 0.5:
            assert nxt.pump_status == "running"
            assert nxt.outlet_valve_status == "open"
        if nxt.pump_status != "running":
            assert nxt.pump_speed_rpm == 0
            assert nxt.pump_efficiency_percent == 0.0
        elif s.pump_status == "running":
            for name, ((lo, hi), fraction, decimals) in TankProcess.PUMP_READINGS.items():
                value = getattr(nxt, name)
                slack = 1.0 if decimals == 0 else 0.011
                assert lo - slack <= value <= hi + slack
                assert abs(value - getattr(s, name)) <= fraction * (hi - lo) + slack, name
        s = nxt


def test_maintenance_countdown_floors_at_zero():
    proc, s = first_tick()
    almost = replace(s, next_maintenance_days=0.00001)
    nxt = proc.evolve("t1", WATER, almost, False, "RO_WATER", 5000, NOW)
    assert nxt.next_maintenance_days == 0.0


def test_alerts_in_check_order():
    assert tank_alerts(10, 25, 4, 5, False) == [
        "LOW_LEVEL",
        "HIGH_TEMPERATURE",
        "CONTAMINATION_DETECTED",
        "HIGH_PRESSURE",
    ]
    assert tank_alerts(96, 10, 0, 100, True) == ["HIGH_LEVEL"]
    assert tank_alerts(50, 10, 0, 141, True) == ["HIGH_PRESSURE"]
    assert tank_alerts(50, 10, 0, 4.5, False) == []


def test_clean_resets_cleaning_schedule():
    proc, s = first_tick()
    worn = replace(s, next_maintenance_days=0.0)
    later = datetime(2026, 2, 1, 9, 0, tzinfo=timezone.utc)
    cleaned = proc.clean(worn, later)
    assert cleaned.last_cleaned == utc_iso(later)
    assert 30.0 <= cleaned.next_maintenance_days <= 90.0
    assert cleaned.level_percent == s.level_percent


def test_partial_valves_hold_their_position():
    _, s = first_tick()
    prev = replace(
        s,
        level_percent=10.0,
        inlet_valve_status="partial",
        inlet_valve_position_percent=55,
        outlet_valve_status="partial",
        outlet_valve_position_percent=37,
        pump_status="idle",
    )
    # 0.99 fails every transition trial, and no flow below 10 %
    proc = TankProcess(FixedRandom(0.99))
    nxt = proc.evolve("t1", WATER, prev, False, "RO_WATER", 5000, NOW)
    assert nxt.flow_rate_lpm == 0.0
    assert (nxt.inlet_valve_status, nxt.inlet_valve_position_percent) == ("partial", 55)
    assert (nxt.outlet_valve_status, nxt.outlet_valve_position_percent) == ("partial", 37)
    assert nxt.pump_status == "idle"


def test_valve_positions():
    proc = TankProcess(random.Random(4))
    assert proc._valve_position("open", "partial", 40) == 100
    assert proc._valve_position("closed", "partial", 40) == 0
    assert proc._valve_position("partial", "partial", 40) == 40
    for _ in range(50):
        assert 20 <= proc._valve_position("partial", "closed", 0) <= 80
