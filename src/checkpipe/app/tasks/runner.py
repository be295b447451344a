"""Runs housekeeping jobs on a background thread.

The caller receives a ``TaskHandle`` with a completion event and a cancel
event. Jobs check the cancel event between steps; a cancelled run stops before
the next job starts. Job failures are logged and never reach the caller.
"""

from __future__ import annotations

import logging
import threading
from datetime import date, datetime, timedelta, timezone
from functools import partial
from pathlib import Path
from typing import Callable

from checkpipe import __version__
from checkpipe.settings import RuntimeSettings
from checkpipe.utils.log import LOG_FILE_PREFIX, LOG_FILE_SUFFIX
from checkpipe.utils.updater import check_for_update

logger = logging.getLogger(__name__)

Job = Callable[[threading.Event], object]

LOG_RETENTION = timedelta(days=7)


class TaskHandle:
    def __init__(self, cancel_event: threading.Event | None = None) -> None:
        self._cancel = cancel_event or threading.Event()
        self._done = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the run completes or ``timeout`` elapses; returns completion."""
        return self._done.wait(timeout)

    def cancel(self) -> None:
        self._cancel.set()

    def start(self, jobs: list[tuple[str, Job]]) -> "TaskHandle":
        self._thread = threading.Thread(target=self._run, args=(jobs,), name="checkpipe-tasks", daemon=True)
        self._thread.start()
        return self

    def _run(self, jobs: list[tuple[str, Job]]) -> None:
        try:
            for name, job in jobs:
                if self._cancel.is_set():
                    logger.debug("task run cancelled before %s", name)
                    return
                try:
                    job(self._cancel)
                except Exception:  # noqa: BLE001 - background jobs must not crash the command
                    logger.debug("task %s failed", name, exc_info=True)
        finally:
            self._done.set()


def _log_file_date(path: Path) -> date | None:
    stem = path.name[len(LOG_FILE_PREFIX) : -len(LOG_FILE_SUFFIX)]
    try:
        return datetime.strptime(stem, "%Y-%m-%d").date()
    except ValueError:
        return None


def prune_logs(log_dir: Path, cancel_event: threading.Event, *, now: datetime | None = None) -> list[Path]:
    """Delete daily log files older than ``LOG_RETENTION``."""
    if not log_dir.is_dir():
        return []
    today = (now or datetime.now(timezone.utc)).date()
    removed: list[Path] = []
    for path in sorted(log_dir.glob(f"{LOG_FILE_PREFIX}*{LOG_FILE_SUFFIX}")):
        if cancel_event.is_set():
            break
        day = _log_file_date(path)
        if day is None or today - day <= LOG_RETENTION:
            continue
        logger.debug("removing old log file %s", path)
        path.unlink(missing_ok=True)
        removed.append(path)
    return removed


def run_tasks(
    settings: RuntimeSettings,
    *,
    update_check: bool,
    notify: bool = True,
    pre_hook: Callable[[threading.Event], None] | None = None,
    cancel_event: threading.Event | None = None,
) -> TaskHandle:
    jobs: list[tuple[str, Job]] = []
    if pre_hook is not None:
        jobs.append(("pre-hook", pre_hook))
    if update_check:
        jobs.append(("update-check", partial(check_for_update, settings, __version__, notify=notify)))
    jobs.append(("prune-logs", partial(prune_logs, settings.log_dir)))
    logger.debug("running tasks: %s", ", ".join(name for name, _ in jobs))
    return TaskHandle(cancel_event).start(jobs)
