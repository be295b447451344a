"""Hooks run before and after every checkpipe command."""

from __future__ import annotations

import logging
import os
import sys
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence, TextIO

from checkpipe import constants
from checkpipe.adapters.config_loader import load_config
from checkpipe.adapters.token_store import load_token
from checkpipe.app.config_service import (
    ActiveCommand,
    ConfigLoader,
    TokenLoader,
    initialise_config,
    log_level_needs_reset,
)
from checkpipe.app.tasks import TaskHandle, run_tasks
from checkpipe.domain.config import Config
from checkpipe.domain.errors import ErrorAndWarnings
from checkpipe.settings import RuntimeSettings, load_settings
from checkpipe.utils.log import (
    LogSink,
    configure_logger,
    new_execution_id,
    resolve_log_level,
)
from checkpipe.utils.telemetry import record_event

try:
    import resource
except ImportError:  # pragma: no cover - not available on Windows
    resource = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

TaskRunner = Callable[..., TaskHandle]


@dataclass
class StartupContext:
    command: ActiveCommand
    execution_id: str
    started_at: float = field(default_factory=time.monotonic)
    settings: RuntimeSettings | None = None
    config: Config | None = None
    warnings: ErrorAndWarnings = field(default_factory=ErrorAndWarnings)
    log_sink: LogSink | None = None
    tasks: TaskHandle | None = None


def is_daemon_command(command: str) -> bool:
    return command in constants.DAEMON_COMMANDS


def pluralize(word: str, count: int) -> str:
    return word if count == 1 else f"{word}s"


def display_deprecation_warnings(warnings: ErrorAndWarnings, stream: TextIO | None = None) -> None:
    if not warnings.warnings:
        return
    out = stream or sys.stderr
    out.write(f"\nDeprecation {pluralize('warning', len(warnings.warnings))}:\n")
    for warning in warnings.warnings:
        out.write(f"{warning}\n\n")


def fail_on_error(result: ErrorAndWarnings, stream: TextIO | None = None) -> None:
    """Exit with status 1 when ``result`` carries an error, after printing its warnings."""
    if result.error is None:
        return
    out = stream or sys.stderr
    for warning in result.warnings:
        out.write(f"Warning: {warning}\n")
    out.write(f"Error: {result.error}\n")
    raise SystemExit(1)


def set_memory_limit(max_mb: int) -> bool:
    """Cap the address space at ``max_mb`` megabytes; non-positive means no limit.

    ``RLIMIT_AS`` is a hard ceiling, not a garbage-collection target: an
    allocation past it raises ``MemoryError`` mid-command. The ceiling also
    counts mapped but unused virtual memory, so it should be set well above
    the expected resident size.
    """
    max_bytes = max_mb * 1024 * 1024
    if max_bytes <= 0 or resource is None:
        return False
    _, hard = resource.getrlimit(resource.RLIMIT_AS)
    limit = max_bytes if hard == resource.RLIM_INFINITY else min(max_bytes, hard)
    try:
        resource.setrlimit(resource.RLIMIT_AS, (limit, hard))
    except (ValueError, OSError) as exc:
        logger.warning("failed to set memory limit of %d MB: %s", max_mb, exc)
        return False
    logger.info("memory limit set to %d MB", max_mb)
    return True


class StartupSequencer:
    def __init__(
        self,
        *,
        install_dir: str | os.PathLike[str] | None = None,
        mod_location: str | os.PathLike[str] | None = None,
        config_loader: ConfigLoader = load_config,
        token_loader: TokenLoader = load_token,
        task_runner: TaskRunner = run_tasks,
        wait_timeout: float = constants.TASK_WAIT_TIMEOUT,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        self._install_dir = install_dir
        self._mod_location = mod_location
        self._config_loader = config_loader
        self._token_loader = token_loader
        self._task_runner = task_runner
        self._wait_timeout = wait_timeout
        self._stdout = stdout or sys.stdout
        self._stderr = stderr or sys.stderr

    def pre_run(self, command: str, args: Sequence[str] = ()) -> StartupContext:
        context = StartupContext(
            command=ActiveCommand(name=command, args=tuple(args), is_terminal_tty=self._stdout.isatty()),
            execution_id=new_execution_id(),
        )

        # completion must not create the install dir or load any config
        if command == constants.COMPLETION_COMMAND:
            return context

        if not is_daemon_command(command):
            # the daemon owns its logging
            context.log_sink = LogSink()
            self._build_logger(context)

        settings = load_settings(self._install_dir)
        context.settings = settings
        config, result = initialise_config(
            settings,
            context.command,
            mod_location=self._resolve_mod_location(),
            config_loader=self._config_loader,
            token_loader=self._token_loader,
        )
        context.warnings = result
        fail_on_error(result, self._stderr)
        context.config = config
        for warning in result.warnings:
            logger.warning("%s", warning)

        if log_level_needs_reset(config):
            # child processes inherit the configured level
            os.environ[constants.ENV_LOG_LEVEL] = config.get_str(constants.ARG_LOG_LEVEL)

        if context.log_sink is not None:
            context.log_sink.attach(settings.log_dir)
            self._build_logger(context)

        context.tasks = self._run_scheduled_tasks(context)

        set_memory_limit(config.get_int(constants.ARG_MEMORY_MAX_MB))
        return context

    def post_run(self, context: StartupContext, exit_code: int = 0) -> None:
        handle = context.tasks
        if handle is not None and not handle.wait(self._wait_timeout):
            logger.debug("background tasks still running after %.2fs - cancelling", self._wait_timeout)
            handle.cancel()

        if context.settings is not None and context.config is not None:
            duration_ms = (time.monotonic() - context.started_at) * 1000
            try:
                record_event(
                    context.settings,
                    context.config,
                    "command",
                    {"name": context.command.name, "exit_code": exit_code},
                    status="ok" if exit_code == 0 else "failed",
                    execution_id=context.execution_id,
                    duration_ms=duration_ms,
                )
            except OSError:
                logger.debug("failed to record command telemetry", exc_info=True)

    def _resolve_mod_location(self) -> Path:
        raw = self._mod_location or os.environ.get(constants.ENV_MOD_LOCATION)
        return Path(raw).expanduser() if raw else Path.cwd()

    def _build_logger(self, context: StartupContext) -> None:
        assert context.log_sink is not None
        configure_logger(context.log_sink, resolve_log_level(), context.execution_id)

    def _run_scheduled_tasks(self, context: StartupContext) -> TaskHandle | None:
        if is_daemon_command(context.command.name):
            return None
        assert context.settings is not None and context.config is not None
        warnings = context.warnings

        def show_deprecations(_: threading.Event) -> None:
            display_deprecation_warnings(warnings, self._stderr)

        return self._task_runner(
            context.settings,
            update_check=context.config.get_bool(constants.ARG_UPDATE_CHECK, True),
            notify=context.command.is_terminal_tty,
            pre_hook=show_deprecations,
        )
