from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

import pytest

from checkpipe.utils.log import (
    OFF,
    TRACE,
    LogSink,
    configure_logger,
    configure_stream_logger,
    log_file_name,
    new_execution_id,
    resolve_log_level,
)


def test_log_file_name_is_daily() -> None:
    assert log_file_name(datetime(2026, 3, 9, 23, 59, tzinfo=timezone.utc)) == "checkpipe-2026-03-09.log"


def test_execution_ids_are_unique() -> None:
    assert new_execution_id() != new_execution_id()


@pytest.mark.parametrize(
    ("environ", "expected"),
    [
        ({}, "warn"),
        ({"CHECKPIPE_LOG_LEVEL": "DEBUG"}, "debug"),
        ({"CHECKPIPE_LOG": "trace"}, "trace"),
        ({"CP_LOG": "error", "CHECKPIPE_LOG": "info"}, "info"),
        ({"CHECKPIPE_LOG_LEVEL": "chatty"}, "warn"),
        ({"CHECKPIPE_LOG_LEVEL": "", "CP_LOG": "off"}, "off"),
    ],
)
def test_resolve_log_level(environ: dict[str, str], expected: str) -> None:
    assert resolve_log_level(environ) == expected


def test_buffered_records_move_into_log_file(tmp_path: Path) -> None:
    sink = LogSink()
    logger = configure_logger(sink, "debug", "exec-1")
    logger.debug("before attach")

    assert "before attach" in sink.buffered()
    path = sink.attach(tmp_path / "logs")
    configure_logger(sink, "debug", "exec-1")
    logger.debug("after attach")
    sink.handler.flush()

    content = path.read_text(encoding="utf-8")
    assert path.name == log_file_name()
    assert content.index("before attach") < content.index("after attach")
    assert content.count("Version:   v") == 1
    assert "[DEBUG] checkpipe [exec-1]: before attach" in content
    assert " UTC [" in content.splitlines()[0]
    assert sink.state == LogSink.ATTACHED
    assert sink.buffered() == ""
    sink.close()


def test_attach_is_idempotent(tmp_path: Path) -> None:
    sink = LogSink()
    first = sink.attach(tmp_path / "logs")
    handler = sink.handler

    assert sink.attach(tmp_path / "other") == first
    assert sink.handler is handler
    assert not (tmp_path / "other").exists()
    sink.close()


def test_level_filters_records() -> None:
    sink = LogSink()
    logger = configure_logger(sink, "error", "exec-2")

    logger.warning("hidden")
    logger.error("shown")

    assert "hidden" not in sink.buffered()
    assert "shown" in sink.buffered()
    assert "Version:" not in sink.buffered()


def test_trace_and_off_levels() -> None:
    sink = LogSink()
    logger = configure_logger(sink, "trace", "exec-3")
    logger.log(TRACE, "very detailed")
    assert "[TRACE] checkpipe [exec-3]: very detailed" in sink.buffered()

    quiet = LogSink()
    logger = configure_logger(quiet, "off", "exec-4")
    logger.critical("nothing")
    assert logger.level == OFF
    assert quiet.buffered() == ""


def test_module_loggers_reach_the_sink() -> None:
    sink = LogSink()
    configure_logger(sink, "info", "exec-5")

    logging.getLogger("checkpipe.app.startup").info("from a module")

    assert "from a module" in sink.buffered()


def test_stream_logger_replaces_sink_handlers(capsys: pytest.CaptureFixture[str]) -> None:
    configure_logger(LogSink(), "info", "exec-6")
    logger = configure_stream_logger("info", "exec-7")

    logger.info("daemon line")

    assert len(logger.handlers) == 1
    assert "checkpipe daemon [exec-7]: daemon line" in capsys.readouterr().err
