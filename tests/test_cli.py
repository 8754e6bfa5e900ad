from dispensim.cli import build_sink, main, parse_args
from dispensim.fleet.delivery import DEFAULT_WEBHOOK_URL, JsonlSink, MqttSink, StdoutSink, WebhookSink


def test_defaults():
    args = parse_args([])
    assert args.machines == "machine_001,machine_002,machine_003,machine_004"
    assert args.sink == "webhook"
    assert args.webhook_url == DEFAULT_WEBHOOK_URL
    assert args.profile is None
    assert args.interval_ms is None
    assert args.duration == 0.0


def test_build_sink():
    assert isinstance(build_sink(parse_args([])), WebhookSink)
    assert isinstance(build_sink(parse_args(["--sink", "stdout"])), StdoutSink)

    mqtt = build_sink(parse_args(["--sink", "mqtt", "--host", "broker", "--port", "1884"]))
    assert isinstance(mqtt, MqttSink)
    assert (mqtt.host, mqtt.port) == ("broker", 1884)


def test_build_jsonl_sink(tmp_path):
    out = tmp_path / "t.jsonl"
    sink = build_sink(parse_args(["--sink", "jsonl", "--out", str(out)]))
    assert isinstance(sink, JsonlSink)
    assert sink.path == str(out)


def test_list_prints_catalog(capsys):
    assert main(["--list"]) == 0
    out = capsys.readouterr().out
    assert "machine_003" in out
    assert "co2_tank" in out
    assert "(gas)" in out
