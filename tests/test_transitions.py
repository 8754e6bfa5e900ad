import random

from dispensim.fleet.transitions import INLET_VALVE, OUTLET_VALVE, PUMP, VALVE_STATES, Transition


def test_default_used_when_no_previous_value():
    t = Transition(0.0, ("a", "b"), "a")
    assert t.step(None, random.Random(1)) == "a"


def test_holds_previous_value_without_transition():
    t = Transition(0.0, ("a", "b"), "a")
    assert t.step("b", random.Random(1)) == "b"


def test_always_transitions_into_choices():
    t = Transition(1.0, ("x", "y"), "a")
    rng = random.Random(5)
    assert {t.step("a", rng) for _ in range(50)} <= {"x", "y"}


def test_declared_tank_transitions():
    assert INLET_VALVE.default == "open"
    assert set(INLET_VALVE.choices) == set(VALVE_STATES)
    assert OUTLET_VALVE.default == "closed"
    assert OUTLET_VALVE.choices == ("partial",)
    assert PUMP.default == "idle"
    assert "running" not in PUMP.choices


def test_transition_rate_is_low():
    rng = random.Random(9)
    state = "open"
    changes = 0
    for _ in range(2000):
        nxt = INLET_VALVE.step(state, rng)
        changes += nxt != state
        state = nxt
    # p=0.05 and a third of draws land on the same value
    assert changes < 150
