import asyncio
import json

import pytest
import requests

from dispensim.fleet.delivery import JsonlSink, MqttSink, StdoutSink, WebhookSink
from dispensim.fleet.errors import DeliveryFailure

PAYLOAD = {"machine_id": "machine_001", "sequence": 7, "tanks": {}}


class FakeResponse:
    def __init__(self, status_code):
        self.status_code = status_code

    @property
    def ok(self):
        return self.status_code < 400


class FakeSession:
    def __init__(self, status_code=200, exc=None):
        self.status_code = status_code
        self.exc = exc
        self.calls = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        return FakeResponse(self.status_code)


def test_webhook_posts_to_machine_url():
    http = FakeSession(200)
    sink = WebhookSink("http://collector:8000/ingest/", timeout=2.5, session=http)

    detail = asyncio.run(sink.deliver("machine_001", PAYLOAD))

    assert detail == "HTTP 200"
    call = http.calls[0]
    assert call["url"] == "http://collector:8000/ingest/machine_001"
    assert call["json"] == PAYLOAD
    assert call["headers"]["X-Machine-ID"] == "machine_001"
    assert call["headers"]["Content-Type"] == "application/json"
    assert call["timeout"] == 2.5


def test_webhook_non_2xx_is_a_failure():
    sink = WebhookSink("http://collector", session=FakeSession(500))
    with pytest.raises(DeliveryFailure) as e:
        asyncio.run(sink.deliver("machine_002", PAYLOAD))
    assert e.value.status == 500


def test_webhook_transport_error_is_a_failure():
    sink = WebhookSink("http://collector", session=FakeSession(exc=requests.ConnectionError("refused")))
    with pytest.raises(DeliveryFailure) as e:
        asyncio.run(sink.deliver("machine_002", PAYLOAD))
    assert e.value.status is None


def test_jsonl_appends_topic_and_payload(tmp_path):
    path = tmp_path / "nested" / "telemetry.jsonl"
    sink = JsonlSink(str(path), base_topic="plant")

    asyncio.run(sink.deliver("machine_001", PAYLOAD))
    asyncio.run(sink.deliver("machine_003", PAYLOAD))

    lines = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [line["topic"] for line in lines] == [
        "plant/machine_001/telemetry",
        "plant/machine_003/telemetry",
    ]
    assert lines[0]["payload"]["sequence"] == 7


def test_mqtt_topic():
    assert MqttSink(base_topic="dispensers").topic_for("machine_004") == "dispensers/machine_004/telemetry"


def test_stdout_sink(capsys):
    assert asyncio.run(StdoutSink().deliver("machine_001", PAYLOAD)) == "stdout"
    assert json.loads(capsys.readouterr().out)["sequence"] == 7


def test_stdout_closed_pipe_is_a_failure(monkeypatch):
    def closed(*args, **kwargs):
        raise BrokenPipeError("closed")

    monkeypatch.setattr("builtins.print", closed)
    with pytest.raises(DeliveryFailure):
        asyncio.run(StdoutSink().deliver("machine_001", PAYLOAD))
