from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any


def log(msg: str) -> None:
    ts = datetime.now().strftime("%H:%M:%S")
    print(f"[{ts}] {msg}", flush=True)


def local_now() -> datetime:
    # aware local time: .hour is the wall-clock hour, isoformat is convertible
    return datetime.now().astimezone()


def utc_iso(ts: datetime | None = None) -> str:
    if ts is None:
        return datetime.now(timezone.utc).isoformat()
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat()


def deep_copy_jsonable(obj: Any) -> Any:
    # payloads are plain json, so a round trip is a full copy
    return json.loads(json.dumps(obj))
