# fleet/state.py
from __future__ import annotations

import random
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Deque, Dict, List, Literal, Optional

from ..util import utc_iso
from .numeric import rand


ValveStatus = Literal["open", "closed", "partial"]
PumpStatus = Literal["running", "idle", "fault", "maintenance"]
FlowDirection = Literal["outbound", "inbound", "static"]

SystemStatus = Literal["operational", "warning", "error", "maintenance"]
ConnectionState = Literal["online", "offline", "maintenance"]

SYSTEM_STATUSES = ("operational", "warning", "error", "maintenance")
CONNECTION_STATES = ("online", "offline", "maintenance")

MAX_PAYLOAD_HISTORY = 20

# initial ranges (days) of the machine-wide countdowns
MACHINE_SERVICE_DAYS = (10.0, 90.0)
FILTER_REPLACEMENT_DAYS = (5.0, 60.0)
CALIBRATION_DAYS = (30.0, 180.0)


@dataclass
class TankState:
    tank_id: str
    product_name: str
    capacity_liters: float
    is_gas: bool

    # Level
    level_percent: float
    volume_liters: float
    volume_remaining_liters: float
    empty_in_hours: float

    # Environment
    temperature_celsius: float
    pressure_bar: float
    humidity_percent: float

    # Flow
    flow_rate_lpm: float
    total_flow_today_liters: float
    flow_direction: FlowDirection

    # Quality
    quality_index_percent: float
    contamination_ppm: float
    ph_level: float
    conductivity_ms_cm: float
    turbidity_ntu: float
    dissolved_oxygen_mg_l: float

    # Valves
    inlet_valve_status: ValveStatus
    inlet_valve_position_percent: int
    outlet_valve_status: ValveStatus
    outlet_valve_position_percent: int

    # Pump
    pump_status: PumpStatus
    pump_speed_rpm: int
    pump_power_watts: int
    pump_efficiency_percent: float
    pump_vibration_mm_s: float

    # Maintenance
    last_cleaned: str
    next_maintenance_days: float

    alerts: List[str] = field(default_factory=list)
    last_updated: str = ""

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["next_maintenance_days"] = round(self.next_maintenance_days, 2)
        d["alert_count"] = len(self.alerts)
        return d


@dataclass
class MachineState:
    system_status: SystemStatus
    operating_mode: str

    # Power & electrical
    voltage_primary: float
    voltage_secondary: float
    current_amps: float
    power_consumption_kw: float
    power_factor: float
    frequency_hz: float

    # Environment (machine room / cabinet)
    ambient_temperature_celsius: float
    cabinet_temperature_celsius: float
    ambient_humidity_percent: float

    # Control system
    controller_cpu_percent: float
    controller_memory_percent: float
    controller_temperature_celsius: float

    # Network
    network_status: ConnectionState
    signal_strength_dbm: int
    packet_loss_percent: float
    latency_ms: int

    # Counters
    total_runtime_hours: int
    cycles_completed_today: int
    error_count_today: int
    warning_count_today: int

    # Safety
    emergency_stop_status: str = "RELEASED"
    door_interlock_status: str = "CLOSED"
    safety_relay_status: str = "OK"
    ground_fault_status: str = "OK"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Session:
    machine_id: str
    profile: str
    interval_ms: int
    created_at: str

    running: bool = False
    handle: Optional[Any] = None  # RecurringTick while running

    sequence: int = 0
    uptime_seconds: int = 0

    tanks: Dict[str, TankState] = field(default_factory=dict)
    machine: Optional[MachineState] = None

    # machine-wide maintenance countdowns (days)
    machine_next_service_days: float = 0.0
    filter_replacement_due_days: float = 0.0
    calibration_due_days: float = 0.0

    # production
    efficiency_percent: Optional[float] = None
    downtime_minutes_today: int = 0

    # delivery outcomes (informational, never retried)
    deliveries_ok: int = 0
    deliveries_failed: int = 0

    updated_at: str = ""
    history: Deque[Dict[str, Any]] = field(default_factory=lambda: deque(maxlen=MAX_PAYLOAD_HISTORY))

    @classmethod
    def create(
        cls,
        machine_id: str,
        profile: str,
        interval_ms: int,
        rng: random.Random,
        now: datetime,
        history_size: int = MAX_PAYLOAD_HISTORY,
    ) -> "Session":
        s = cls(
            machine_id=machine_id,
            profile=profile,
            interval_ms=int(interval_ms),
            created_at=utc_iso(now),
            updated_at=utc_iso(now),
            history=deque(maxlen=history_size),
        )
        s.reseed_countdowns(rng)
        return s

    def reseed_countdowns(self, rng: random.Random) -> None:
        self.machine_next_service_days = rand(rng, *MACHINE_SERVICE_DAYS)
        self.filter_replacement_due_days = rand(rng, *FILTER_REPLACEMENT_DAYS)
        self.calibration_due_days = rand(rng, *CALIBRATION_DAYS)

    @property
    def last_payload(self) -> Optional[Dict[str, Any]]:
        return self.history[-1] if self.history else None
