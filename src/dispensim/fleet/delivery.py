# fleet/delivery.py
from __future__ import annotations

import asyncio
import json
import os
from typing import Any, Dict, Optional, Protocol

import requests
from aiomqtt import Client, MqttError

from .errors import DeliveryFailure

DEFAULT_WEBHOOK_URL = "http://127.0.0.1:8000/api/v1/simulation/ingest"


class Sink(Protocol):
    """Best-effort payload delivery. Raises DeliveryFailure, never retries."""

    async def deliver(self, machine_id: str, payload: Dict[str, Any]) -> str:
        ...


def ensure_dir_for_file(path: str) -> None:
    d = os.path.dirname(os.path.abspath(path))
    if d and not os.path.exists(d):
        os.makedirs(d, exist_ok=True)


class WebhookSink:
    """
    POST {url_base}/{machine_id} with the payload as JSON body.
    requests is blocking, so the call runs in a worker thread.
    """

    def __init__(self, url_base: str = DEFAULT_WEBHOOK_URL, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.url_base = url_base.rstrip("/")
        self.timeout = timeout
        self._http = session or requests.Session()

    async def deliver(self, machine_id: str, payload: Dict[str, Any]) -> str:
        return await asyncio.to_thread(self._post, machine_id, payload)

    def _post(self, machine_id: str, payload: Dict[str, Any]) -> str:
        url = f"{self.url_base}/{machine_id}"
        try:
            res = self._http.post(
                url,
                json=payload,
                headers={"Content-Type": "application/json", "X-Machine-ID": machine_id},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise DeliveryFailure(f"POST {url} failed: {e!r}") from e

        if not res.ok:
            raise DeliveryFailure(f"POST {url} -> HTTP {res.status_code}", status=res.status_code)
        return f"HTTP {res.status_code}"


class MqttSink:
    def __init__(self, host: str = "127.0.0.1", port: int = 1883, base_topic: str = "dispensers"):
        self.host = host
        self.port = port
        self.base_topic = base_topic

    def topic_for(self, machine_id: str) -> str:
        return f"{self.base_topic}/{machine_id}/telemetry"

    async def deliver(self, machine_id: str, payload: Dict[str, Any]) -> str:
        topic = self.topic_for(machine_id)
        try:
            async with Client(hostname=self.host, port=self.port) as client:
                await client.publish(topic, json.dumps(payload).encode("utf-8"), qos=0)
        except MqttError as e:
            raise DeliveryFailure(f"MQTT publish {topic} failed: {e!r}") from e
        return f"mqtt://{self.host}:{self.port}/{topic}"


class JsonlSink:
    def __init__(self, path: str = "out/telemetry.jsonl", base_topic: str = "dispensers"):
        self.path = path
        self.base_topic = base_topic
        ensure_dir_for_file(path)

    async def deliver(self, machine_id: str, payload: Dict[str, Any]) -> str:
        line = {"topic": f"{self.base_topic}/{machine_id}/telemetry", "payload": payload}
        try:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(json.dumps(line, ensure_ascii=False) + "\n")
        except OSError as e:
            raise DeliveryFailure(f"write {self.path} failed: {e!r}") from e
        return self.path


class StdoutSink:
    async def deliver(self, machine_id: str, payload: Dict[str, Any]) -> str:
        try:
            print(json.dumps(payload), flush=True)
        except OSError as e:
            # closed pipe, e.g. output piped into head
            raise DeliveryFailure(f"stdout write failed: {e!r}") from e
        return "stdout"
