from __future__ import annotations

import json

import jsonschema
import pytest

from checkpipe.domain.config import Config
from checkpipe.settings import RuntimeSettings
from checkpipe.utils.telemetry import TELEMETRY_FILE, record_event, telemetry_enabled


def _config(telemetry: str) -> Config:
    return Config({"defaults": {"telemetry": telemetry}})


def _records(settings: RuntimeSettings) -> list[dict]:
    path = settings.log_dir / TELEMETRY_FILE
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_record_event_appends_jsonl(settings: RuntimeSettings) -> None:
    config = _config("info")

    record_event(settings, config, "templates.sync", {"updated": ["html"]})
    record_event(settings, config, "command", {"name": "version"}, status="ok", execution_id="abc-1", duration_ms=1.5)

    first, second = _records(settings)
    assert first["event"] == "templates.sync"
    assert first["payload"] == {"updated": ["html"]}
    assert first["level"] == "info"
    assert "status" not in first
    assert second["status"] == "ok"
    assert second["executionId"] == "abc-1"
    assert second["durationMs"] == 1.5


def test_disabled_telemetry_writes_nothing(settings: RuntimeSettings) -> None:
    config = _config("none")

    assert telemetry_enabled(config) is False
    record_event(settings, config, "command")

    assert not (settings.log_dir / TELEMETRY_FILE).exists()


def test_blank_event_name_is_rejected(settings: RuntimeSettings) -> None:
    with pytest.raises(jsonschema.ValidationError):
        record_event(settings, _config("info"), "  ")


def test_unknown_level_is_rejected(settings: RuntimeSettings) -> None:
    with pytest.raises(jsonschema.ValidationError):
        record_event(settings, _config("info"), "command", level="fatal")


def test_schema_rejects_negative_duration(settings: RuntimeSettings) -> None:
    with pytest.raises(jsonschema.ValidationError):
        record_event(settings, _config("info"), "command", duration_ms=-1)


def test_rejected_record_is_not_written(settings: RuntimeSettings) -> None:
    with pytest.raises(jsonschema.ValidationError):
        record_event(settings, _config("info"), "command", level="fatal")

    assert not (settings.log_dir / TELEMETRY_FILE).exists()
