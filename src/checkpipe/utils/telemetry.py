"""Lightweight local telemetry events (disabled with ``telemetry: none``)."""

from __future__ import annotations

import json
import time
from typing import Any

from checkpipe.constants import ARG_TELEMETRY, TELEMETRY_INFO, TELEMETRY_NONE
from checkpipe.domain.config import Config
from checkpipe.resources import schema_validator
from checkpipe.settings import RuntimeSettings

TELEMETRY_FILE = "telemetry.jsonl"
TELEMETRY_SCHEMA = "telemetry.schema.json"


def telemetry_enabled(config: Config) -> bool:
    return config.get_str(ARG_TELEMETRY, TELEMETRY_INFO) != TELEMETRY_NONE


def record_event(
    settings: RuntimeSettings,
    config: Config,
    event: str,
    payload: dict[str, Any] | None = None,
    *,
    level: str = "info",
    status: str | None = None,
    execution_id: str | None = None,
    duration_ms: float | None = None,
) -> None:
    if not telemetry_enabled(config):
        return
    record: dict[str, Any] = {
        "ts": time.time(),
        "event": event,
        "payload": payload or {},
        "level": level,
    }
    if status:
        record["status"] = status
    if execution_id:
        record["executionId"] = execution_id
    if duration_ms is not None:
        record["durationMs"] = duration_ms
    schema_validator(TELEMETRY_SCHEMA).validate(record)
    log_path = settings.log_dir / TELEMETRY_FILE
    log_path.parent.mkdir(parents=True, exist_ok=True)
    with log_path.open("a", encoding="utf-8") as fh:
        fh.write(json.dumps(record, ensure_ascii=False) + "\n")
