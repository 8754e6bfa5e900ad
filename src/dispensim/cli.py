#!/usr/bin/env python3
# cli.py: run a fleet of simulated dispensers and deliver their payloads
from __future__ import annotations

import argparse
import asyncio
import os
import random
import signal
import time
from typing import List, Optional

from .fleet.catalog import MACHINES, PROFILES
from .fleet.delivery import DEFAULT_WEBHOOK_URL, JsonlSink, MqttSink, Sink, StdoutSink, WebhookSink
from .fleet.errors import SimulationError
from .fleet.simulation import EngineConfig, SimulationEngine
from .util import log


def install_signal_handlers(stop_event: asyncio.Event) -> None:
    def _h(*_):
        stop_event.set()

    try:
        signal.signal(signal.SIGINT, _h)
        signal.signal(signal.SIGTERM, _h)
    except ValueError:
        # not on the main thread
        pass


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Multi-tank dispenser fleet simulator")
    p.add_argument("--machines", default=",".join(MACHINES),
                   help="Comma-separated machine ids to start (default: whole catalog)")
    p.add_argument("--profile", choices=sorted(PROFILES), default=None,
                   help="Override every machine's default profile")
    p.add_argument("--interval-ms", type=int, default=None,
                   help="Override the profile tick interval")
    p.add_argument("--sink", choices=["webhook", "mqtt", "jsonl", "stdout"], default="webhook")
    p.add_argument("--webhook-url", default=DEFAULT_WEBHOOK_URL,
                   help="Base URL; the machine id is appended")
    p.add_argument("--timeout", type=float, default=None, help="Webhook timeout in seconds")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=1883)
    p.add_argument("--base-topic", default="dispensers")
    p.add_argument("--out", default="out/telemetry.jsonl")
    p.add_argument("--duration", type=float, default=0.0, help="Seconds to run (0 = until interrupted)")
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--list", action="store_true", help="List the machine catalog and exit")
    return p.parse_args(argv)


def build_sink(args: argparse.Namespace) -> Sink:
    if args.sink == "mqtt":
        return MqttSink(args.host, args.port, args.base_topic)
    if args.sink == "jsonl":
        return JsonlSink(args.out, args.base_topic)
    if args.sink == "stdout":
        return StdoutSink()
    return WebhookSink(args.webhook_url, timeout=args.timeout)


async def run(args: argparse.Namespace) -> int:
    stop_event = asyncio.Event()
    install_signal_handlers(stop_event)

    rng = random.Random(args.seed) if args.seed is not None else None
    engine = SimulationEngine(build_sink(args), cfg=EngineConfig(), rng=rng)

    machine_ids = [m.strip() for m in args.machines.split(",") if m.strip()]
    log(f"[MAIN] sink={args.sink} machines={','.join(machine_ids)}")
    if args.sink == "jsonl":
        log(f"[MAIN] out={os.path.abspath(args.out)}")

    for machine_id in machine_ids:
        try:
            res = engine.start(machine_id, profile=args.profile, interval_ms=args.interval_ms)
        except SimulationError as e:
            log(f"[MAIN] cannot start {machine_id}: {e}")
            await engine.close()
            return 2
        log(f"[MAIN] {res.message} tanks={','.join(res.tanks)} interval={res.interval_ms}ms")

    started = time.monotonic()
    while not stop_event.is_set():
        if args.duration > 0 and time.monotonic() - started >= args.duration:
            break
        await asyncio.sleep(0.2)

    await engine.close()
    for m in engine.list_machines():
        st = engine.status(m["machine_id"])
        if st["sequence"]:
            log(f"[MAIN] {m['machine_id']} ticks={st['sequence']}")
    return 0


def print_catalog() -> None:
    for m in MACHINES.values():
        profile = PROFILES[m.default_profile]
        print(f"{m.id}  {m.name}  [{m.location}]  profile={m.default_profile} every {profile.default_interval_ms}ms")
        for tank_id, tank in m.tank_configuration.items():
            gas = " (gas)" if tank.is_gas else ""
            print(f"    {tank_id:<22} {tank.capacity_liters:>8} L  {tank.product}{gas}")


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    if args.list:
        print_catalog()
        return 0
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
