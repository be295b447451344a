"""Process logging for checkpipe.

Logging is set up in two phases. Until the install directory is known, log
records are written to an in-memory buffer held by a ``LogSink``. Once the log
directory is resolved the sink is attached: the buffered lines are flushed into
the daily log file and later records go straight to that file.
"""

from __future__ import annotations

import io
import logging
import os
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping

from checkpipe import __version__
from checkpipe.constants import APP_NAME, DEFAULT_LOG_LEVEL, ENV_LOG_LEVEL, LEGACY_LOG_LEVEL_ENV_VARS

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

OFF = logging.CRITICAL + 10

LEVELS = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "off": OFF,
}

LOG_FILE_PREFIX = f"{APP_NAME}-"
LOG_FILE_SUFFIX = ".log"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class UTCFormatter(logging.Formatter):
    converter = time.gmtime


def new_execution_id() -> str:
    return f"{uuid.uuid4().hex[:8]}-{os.getpid()}"


def log_file_name(day: datetime | None = None) -> str:
    day = day or datetime.now(timezone.utc)
    return f"{LOG_FILE_PREFIX}{day.strftime('%Y-%m-%d')}{LOG_FILE_SUFFIX}"


def resolve_log_level(environ: Mapping[str, str] | None = None) -> str:
    """Return the log level named by the environment (legacy variables included)."""
    env = os.environ if environ is None else environ
    for name in (ENV_LOG_LEVEL, *LEGACY_LOG_LEVEL_ENV_VARS):
        value = env.get(name)
        if value:
            level = value.strip().lower()
            return level if level in LEVELS else DEFAULT_LOG_LEVEL
    return DEFAULT_LOG_LEVEL


class LogSink:
    """Log destination that moves from an in-memory buffer to a log file."""

    BUFFERING = "buffering"
    ATTACHED = "attached"

    def __init__(self) -> None:
        self._buffer = io.StringIO()
        self._handler: logging.Handler = logging.StreamHandler(self._buffer)
        self.state = self.BUFFERING
        self.log_file: Path | None = None
        self.banner_written = False

    @property
    def handler(self) -> logging.Handler:
        return self._handler

    def buffered(self) -> str:
        return self._buffer.getvalue()

    def attach(self, log_dir: Path) -> Path:
        if self.state == self.ATTACHED and self.log_file is not None:
            return self.log_file
        log_dir.mkdir(parents=True, exist_ok=True)
        path = log_dir / log_file_name()
        handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        handler.stream.write(self._buffer.getvalue())
        handler.flush()
        self._handler.close()
        self._buffer = io.StringIO()
        self._handler = handler
        self.log_file = path
        self.state = self.ATTACHED
        return path

    def close(self) -> None:
        self._handler.close()


def configure_logger(sink: LogSink, level: str, execution_id: str) -> logging.Logger:
    """(Re)build the ``checkpipe`` logger on top of ``sink``.

    The banner is written only on the first construction for a sink.
    """
    root = logging.getLogger(APP_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = sink.handler
    handler.setFormatter(
        UTCFormatter(
            f"%(asctime)s.%(msecs)03d UTC [%(levelname)s] {APP_NAME} [{execution_id}]: %(message)s",
            datefmt=DATE_FORMAT,
        )
    )
    root.addHandler(handler)
    root.setLevel(LEVELS.get(level, LEVELS[DEFAULT_LOG_LEVEL]))
    root.propagate = False

    if not sink.banner_written:
        _write_banner(root, level, execution_id)
        sink.banner_written = True
    return root


def configure_stream_logger(level: str, execution_id: str) -> logging.Logger:
    """Log to stderr; used by the daemon role, which owns its logging."""
    root = logging.getLogger(APP_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = logging.StreamHandler()
    handler.setFormatter(
        UTCFormatter(f"%(asctime)s [%(levelname)s] {APP_NAME} daemon [{execution_id}]: %(message)s", datefmt=DATE_FORMAT)
    )
    root.addHandler(handler)
    root.setLevel(LEVELS.get(level, LEVELS[DEFAULT_LOG_LEVEL]))
    root.propagate = False
    return root


def _write_banner(root: logging.Logger, level: str, execution_id: str) -> None:
    title = f"checkpipe [{execution_id}]"
    root.info("*" * 56)
    root.info("**%s**", title.center(52))
    root.info("*" * 56)
    root.info("Version:   v%s", __version__)
    root.info("Log level: %s", level)
    root.info("Log date: %s", datetime.now(timezone.utc).strftime("%Y-%m-%d"))
