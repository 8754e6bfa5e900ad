# app.py (Streamlit): control panel for the dispenser fleet SimulationEngine
# run: streamlit run src/dispensim/app.py
from __future__ import annotations

import time

import pandas as pd
import streamlit as st

from dispensim.fleet.catalog import MACHINES, PROFILES
from dispensim.fleet.errors import SimulationError
from dispensim.fleet.simulation import SimulationEngine


# ======================================================
# INIT
# ======================================================
st.set_page_config(page_title="Dispenser Fleet Simulator", layout="wide")

if "engine" not in st.session_state:
    # no sink: the panel only advances and inspects state
    st.session_state.engine = SimulationEngine()
    st.session_state.running = False
    st.session_state.tick_s = 1.0

engine: SimulationEngine = st.session_state.engine


# ======================================================
# STEP FUNCTION (manual or auto)
# ======================================================
def sim_step(machine_id: str) -> None:
    try:
        engine.advance(machine_id)
    except SimulationError as e:
        st.error(str(e))


def history_frame(machine_id: str) -> pd.DataFrame:
    rows = []
    for p in engine.history(machine_id):
        row = {"seq": p["sequence"]}
        for tank_id, t in p["tanks"].items():
            row[f"{tank_id}_level"] = t["level_percent"]
            row[f"{tank_id}_temp"] = t["temperature_celsius"]
        agg = p["aggregated_data"]
        row["overall_fill_percent"] = agg["overall_fill_percent"]
        row["total_flow_rate_lpm"] = agg["total_flow_rate_lpm"]
        row["efficiency_percent"] = p["production_stats"]["efficiency_percent"]
        rows.append(row)
    if not rows:
        return pd.DataFrame()
    return pd.DataFrame(rows).set_index("seq")


# ======================================================
# SIDEBAR CONTROLS
# ======================================================
st.sidebar.title("Controls")

machine_id = st.sidebar.selectbox(
    "Machine",
    list(MACHINES),
    format_func=lambda m: f"{m}: {MACHINES[m].name}",
)
machine = MACHINES[machine_id]

profile_key = st.sidebar.selectbox(
    "Profile",
    list(PROFILES),
    index=list(PROFILES).index(machine.default_profile),
)
if engine.session(machine_id) is None and profile_key != machine.default_profile:
    st.sidebar.caption("Profile applies when the session is first created.")

st.session_state.tick_s = st.sidebar.slider("UI refresh (seconds)", 0.1, 5.0, float(st.session_state.tick_s), 0.1)

c1, c2 = st.sidebar.columns(2)
if c1.button("Step once"):
    engine.open_session(machine_id, profile_key)
    sim_step(machine_id)

if c2.button("Reset"):
    st.session_state.engine = SimulationEngine()
    st.rerun()

st.session_state.running = st.sidebar.toggle("Running", value=st.session_state.running)

st.sidebar.divider()

# service
st.sidebar.subheader("Service")
session = engine.session(machine_id)
if st.sidebar.button("Service machine (service/filter/calibration)", disabled=session is None):
    engine.service(machine_id)

tank_choice = st.sidebar.selectbox("Tank", list(machine.tank_configuration))
if st.sidebar.button("Clean tank", disabled=session is None or tank_choice not in session.tanks):
    engine.service(machine_id, tank_choice)


# ======================================================
# MAIN UI
# ======================================================
st.title("Dispenser Fleet Simulation")

status = engine.status(machine_id)
payload = status["last_payload"]

a, b, c, d, e = st.columns(5)
a.metric("machine", machine.name)
b.metric("profile", status["profile"])
c.metric("interval_ms", f"{status['interval_ms']}")
d.metric("sequence", f"{status['sequence']}")
e.metric("tanks", f"{len(status['tanks'])}")

if payload is None:
    st.info("No ticks yet. Press 'Step once' or toggle 'Running'.")
else:
    ms = payload["machine_sensors"]
    health = payload["health"]
    agg = payload["aggregated_data"]

    st.divider()

    # Machine
    st.subheader("Machine")
    c1, c2, c3, c4, c5 = st.columns(5)
    c1.metric("system_status", ms["system_status"])
    c2.metric("network_status", ms["network_status"])
    c3.metric("uptime_seconds", f"{health['uptime_seconds']}")
    c4.metric("power_kw", f"{ms['power_consumption_kw']:.2f}")
    c5.metric("cabinet_temp", f"{ms['cabinet_temperature_celsius']:.1f}")
    c1, c2, c3, c4, c5 = st.columns(5)
    c1.metric("overall_fill", f"{agg['overall_fill_percent']:.1f}%")
    c2.metric("total_flow_lpm", f"{agg['total_flow_rate_lpm']:.1f}")
    c3.metric("avg_tank_temp", f"{agg['average_tank_temperature']:.1f}")
    c4.metric("tanks_below_20%", f"{agg['tanks_below_20_percent']}")
    c5.metric("door_interlock", ms["door_interlock_status"])

    st.divider()

    # Tanks
    st.subheader("Tanks")
    for tank_id, t in payload["tanks"].items():
        st.markdown(f"**{tank_id}**: {t['product_name']} ({t['capacity_liters']} L)")
        c1, c2, c3, c4, c5, c6 = st.columns(6)
        c1.metric("level", f"{t['level_percent']:.1f}%")
        c2.metric("volume_l", f"{t['volume_liters']:.0f}")
        c3.metric("temp_c", f"{t['temperature_celsius']:.1f}")
        c4.metric("pressure_bar", f"{t['pressure_bar']:.2f}")
        c5.metric("flow_lpm", f"{t['flow_rate_lpm']:.1f}")
        c6.metric("pump", t["pump_status"])
        if t["alerts"]:
            st.write("alerts: " + ", ".join(t["alerts"]))

    st.divider()

    # Alarms + maintenance
    p1, p2 = st.columns(2)
    with p1:
        st.subheader("Alarms")
        if payload["alarms"]:
            st.dataframe(pd.DataFrame(payload["alarms"]), use_container_width=True)
        else:
            st.write("none")
    with p2:
        st.subheader("Maintenance")
        mt = payload["maintenance"]
        c1, c2, c3 = st.columns(3)
        c1.metric("service_days", f"{mt['machine_next_service_days']:.2f}")
        c2.metric("filter_days", f"{mt['filter_replacement_due_days']:.2f}")
        c3.metric("calibration_days", f"{mt['calibration_due_days']:.2f}")
        st.dataframe(pd.DataFrame(mt["upcoming_tasks"]), use_container_width=True)

# History
df = history_frame(machine_id)
if len(df) > 2:
    st.subheader("History")
    level_cols = [c for c in df.columns if c.endswith("_level")]
    st.line_chart(df[level_cols])
    st.line_chart(df[["overall_fill_percent", "efficiency_percent"]])
    st.dataframe(df.tail(20), use_container_width=True)


# ======================================================
# LOOP
# ======================================================
if st.session_state.running:
    engine.open_session(machine_id, profile_key)
    sim_step(machine_id)
    time.sleep(st.session_state.tick_s)
    st.rerun()
