# fleet/simulation.py
from __future__ import annotations

import asyncio
import functools
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set

from ..util import deep_copy_jsonable, local_now, log
from .catalog import MACHINES, PROFILES, MachineDefinition, SimulationProfile
from .delivery import Sink
from .errors import DeliveryFailure, InvalidState, NotFound
from .process.payload import PayloadAssembler
from .state import MAX_PAYLOAD_HISTORY, Session


@dataclass
class EngineConfig:
    first_tick_delay_s: float = 0.1  # lets start() return before the first emission
    history_size: int = MAX_PAYLOAD_HISTORY
    firmware_version: str = "3.2.1"


@dataclass
class StartResult:
    machine_id: str
    started: bool  # False when the session was already running
    interval_ms: int
    tanks: List[str] = field(default_factory=list)
    message: str = ""


class RecurringTick:
    """
    Cancellable repeating action on the running event loop.

    Each action is awaited before the next sleep, so ticks of one machine
    never overlap.
    """

    def __init__(self, interval_s: float, action: Callable[[], Awaitable[Any]],
                 first_delay_s: float = 0.0, name: str = "tick"):
        self.interval_s = float(interval_s)
        self.first_delay_s = float(first_delay_s)
        self.name = name
        self._action = action
        self._task = asyncio.get_running_loop().create_task(self._run(), name=name)

    async def _run(self) -> None:
        await asyncio.sleep(self.first_delay_s)
        while True:
            try:
                await self._action()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log(f"[SIM] {self.name} tick error: {e!r}")
            await asyncio.sleep(self.interval_s)

    def cancel(self) -> None:
        self._task.cancel()


class SimulationEngine:
    """
    Owns every machine session of the process.

    Lifecycle per machine: no session -> stopped -> running -> stopped.
    At most one RecurringTick exists per machine.
    """

    def __init__(
        self,
        sink: Optional[Sink] = None,
        machines: Mapping[str, MachineDefinition] = MACHINES,
        profiles: Mapping[str, SimulationProfile] = PROFILES,
        cfg: EngineConfig | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = local_now,
    ):
        self.sink = sink
        self.machines = machines
        self.profiles = profiles
        self.cfg = cfg or EngineConfig()
        self._rng = rng or random.Random()
        self._clock = clock

        self.assembler = PayloadAssembler(self._rng, firmware_version=self.cfg.firmware_version)

        self._sessions: Dict[str, Session] = {}
        self._inflight: Set[asyncio.Task] = set()

    # ======================================================
    # Lookups
    # ======================================================
    def _machine(self, machine_id: str) -> MachineDefinition:
        machine = self.machines.get(machine_id)
        if machine is None:
            raise NotFound(f"Machine not found: {machine_id}")
        return machine

    def _profile(self, key: str) -> SimulationProfile:
        profile = self.profiles.get(key)
        if profile is None:
            raise InvalidState(f"Unknown simulation profile: {key}")
        return profile

    def open_session(self, machine_id: str, profile_key: str | None = None,
                     interval_ms: int | None = None) -> Session:
        session = self._sessions.get(machine_id)
        if session is not None:
            return session

        machine = self._machine(machine_id)
        key = profile_key or machine.default_profile
        profile = self._profile(key)

        session = Session.create(
            machine_id,
            key,
            interval_ms or profile.default_interval_ms,
            self._rng,
            self._clock(),
            history_size=self.cfg.history_size,
        )
        self._sessions[machine_id] = session
        log(f"[SIM] session created {machine_id} profile={key} interval={session.interval_ms}ms")
        return session

    def session(self, machine_id: str) -> Optional[Session]:
        self._machine(machine_id)
        return self._sessions.get(machine_id)

    # ======================================================
    # Lifecycle
    # ======================================================
    def start(self, machine_id: str, profile: str | None = None, interval_ms: int | None = None) -> StartResult:
        machine = self._machine(machine_id)
        if profile is not None:
            self._profile(profile)
        if interval_ms is not None and interval_ms <= 0:
            raise InvalidState(f"Tick interval must be positive, got {interval_ms}")

        session = self.open_session(machine_id, profile, interval_ms)
        tanks = list(machine.tank_configuration)

        if session.running:
            return StartResult(machine_id, False, session.interval_ms, tanks, "Simulation already running")

        # overrides only apply to a stopped session
        if profile is not None and profile != session.profile:
            session.profile = profile
            if interval_ms is None:
                session.interval_ms = self.profiles[profile].default_interval_ms
        if interval_ms is not None:
            session.interval_ms = int(interval_ms)

        self._cancel_handle(session)
        session.handle = RecurringTick(
            session.interval_ms / 1000.0,
            functools.partial(self._emit, machine_id),
            first_delay_s=self.cfg.first_tick_delay_s,
            name=f"tick-{machine_id}",
        )
        session.running = True

        log(f"[SIM] started {machine.name} ({machine_id}) every {session.interval_ms}ms tanks={len(tanks)}")
        return StartResult(
            machine_id,
            True,
            session.interval_ms,
            tanks,
            f"Multi-tank simulation started for {machine.name}",
        )

    def stop(self, machine_id: str) -> None:
        machine = self._machine(machine_id)
        session = self._sessions.get(machine_id)
        if session is None or not session.running:
            raise InvalidState(f"Simulation not running: {machine_id}")

        # an in-flight delivery is left to finish
        self._cancel_handle(session)
        session.running = False
        log(f"[SIM] stopped {machine.name} ({machine_id}) after seq={session.sequence}")

    @staticmethod
    def _cancel_handle(session: Session) -> None:
        if session.handle is not None:
            session.handle.cancel()
            session.handle = None

    async def close(self) -> None:
        for session in self._sessions.values():
            self._cancel_handle(session)
            session.running = False
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    # ======================================================
    # Ticks
    # ======================================================
    def advance(self, machine_id: str) -> Dict[str, Any]:
        """Run one tick and commit it, without delivering the payload."""
        machine = self._machine(machine_id)
        session = self.open_session(machine_id)
        profile = self._profile(session.profile)
        return self.assembler.tick(machine, profile, session, self._clock())

    async def tick_once(self, machine_id: str) -> Dict[str, Any]:
        return await self._emit(machine_id)

    async def _emit(self, machine_id: str) -> Dict[str, Any]:
        payload = self.advance(machine_id)
        self._log_alarms(payload)

        if self.sink is not None:
            task = asyncio.get_running_loop().create_task(self._deliver(machine_id, payload))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)
            # stop() cancels the timer task, not the delivery
            await asyncio.shield(task)
        return payload

    async def _deliver(self, machine_id: str, payload: Dict[str, Any]) -> bool:
        session = self._sessions[machine_id]
        seq = payload["sequence"]
        try:
            detail = await self.sink.deliver(machine_id, payload)
        except DeliveryFailure as e:
            session.deliveries_failed += 1
            log(f"[DELIVERY] {machine_id} seq={seq} failed: {e}")
            return False
        except Exception as e:
            session.deliveries_failed += 1
            log(f"[DELIVERY] {machine_id} seq={seq} sink error: {e!r}")
            return False

        session.deliveries_ok += 1
        log(f"[DELIVERY] {self.machines[machine_id].name} seq={seq} -> {detail}")
        return True

    @staticmethod
    def _log_alarms(payload: Dict[str, Any]) -> None:
        alarms = payload["alarms"]
        if not alarms:
            return
        log(f"[ALARM] {payload['machine_id']} seq={payload['sequence']} alarms={len(alarms)}")
        for alarm in alarms:
            log(f"[ALARM]   [{alarm['severity']}] {alarm['message']}")

    # ======================================================
    # Queries
    # ======================================================
    def status(self, machine_id: str) -> Dict[str, Any]:
        machine = self._machine(machine_id)
        session = self._sessions.get(machine_id)
        return {
            "machine_id": machine_id,
            "name": machine.name,
            "running": bool(session and session.running),
            "tanks": list(machine.tank_configuration),
            "profile": session.profile if session else machine.default_profile,
            "interval_ms": session.interval_ms if session
            else self._profile(machine.default_profile).default_interval_ms,
            "sequence": session.sequence if session else 0,
            # copies: callers never alias the retained history
            "last_payload": deep_copy_jsonable(session.last_payload) if session else None,
        }

    def history(self, machine_id: str) -> List[Dict[str, Any]]:
        session = self.session(machine_id)
        return [deep_copy_jsonable(p) for p in session.history] if session else []

    def list_machines(self) -> List[Dict[str, Any]]:
        out = []
        for m in self.machines.values():
            session = self._sessions.get(m.id)
            out.append(
                {
                    "machine_id": m.id,
                    "name": m.name,
                    "location": m.location,
                    "profile": session.profile if session else m.default_profile,
                    "tanks": list(m.tank_configuration),
                    "running": bool(session and session.running),
                }
            )
        return out

    # ======================================================
    # Service
    # ======================================================
    def service(self, machine_id: str, tank_id: str | None = None) -> None:
        """
        Explicit service: with tank_id the tank is cleaned, otherwise the
        machine-wide countdowns (service, filter, calibration) are reset.
        """
        machine = self._machine(machine_id)
        if tank_id is not None and tank_id not in machine.tank_configuration:
            raise NotFound(f"Tank not found: {machine_id}/{tank_id}")

        session = self._sessions.get(machine_id)
        if session is None:
            raise InvalidState(f"No simulation session for {machine_id}")

        if tank_id is None:
            session.reseed_countdowns(self._rng)
            log(f"[SIM] serviced {machine_id}: service/filter/calibration countdowns reset")
            return

        state = session.tanks.get(tank_id)
        if state is None:
            raise InvalidState(f"Tank {tank_id} has no readings yet")
        session.tanks[tank_id] = self.assembler.tank_process.clean(state, self._clock())
        log(f"[SIM] serviced {machine_id}/{tank_id}: cleaned")
