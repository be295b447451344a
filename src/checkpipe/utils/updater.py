"""Update check for checkpipe installations."""

from __future__ import annotations

import json
import logging
import sys
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, TextIO

from packaging.version import InvalidVersion, Version

from checkpipe.settings import RuntimeSettings

logger = logging.getLogger(__name__)

PYPI_URL = "https://pypi.org/pypi/checkpipe/json"
STATE_FILENAME = "update-check.json"
CHECK_INTERVAL = timedelta(hours=24)
FETCH_TIMEOUT = 5


@dataclass
class UpdateState:
    last_checked: datetime | None = None
    latest_version: str | None = None
    status: str | None = None

    @classmethod
    def from_file(cls, path: Path) -> "UpdateState":
        if not path.exists():
            return cls()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return cls()
        if not isinstance(data, dict):
            return cls()
        last_checked = None
        if ts := data.get("last_checked"):
            try:
                last_checked = datetime.fromisoformat(ts)
            except (TypeError, ValueError):
                last_checked = None
            if last_checked is not None and last_checked.tzinfo is None:
                # naive timestamps are UTC
                last_checked = last_checked.replace(tzinfo=timezone.utc)
        return cls(
            last_checked=last_checked,
            latest_version=data.get("latest_version"),
            status=data.get("status"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "last_checked": self.last_checked.isoformat() if self.last_checked else None,
            "latest_version": self.latest_version,
            "status": self.status,
        }


def _is_dev_environment() -> bool:
    try:
        repo_root = Path(__file__).resolve().parents[3]
    except IndexError:
        return False
    return (repo_root / ".git").exists()


def _state_path(settings: RuntimeSettings) -> Path:
    return settings.internal_dir / STATE_FILENAME


def _load_state(settings: RuntimeSettings) -> UpdateState:
    return UpdateState.from_file(_state_path(settings))


def _store_state(settings: RuntimeSettings, state: UpdateState) -> None:
    path = _state_path(settings)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(state.to_dict(), indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def _fetch_remote_version() -> str | None:
    import urllib.error
    import urllib.request

    request = urllib.request.Request(PYPI_URL, headers={"User-Agent": "checkpipe-update-check"})
    try:
        with urllib.request.urlopen(request, timeout=FETCH_TIMEOUT) as resp:  # noqa: S310
            payload = json.loads(resp.read().decode("utf-8"))
    except (urllib.error.URLError, TimeoutError, json.JSONDecodeError):  # pragma: no cover - network failure
        return None
    releases = payload.get("releases", {})
    versions = [v for v, files in releases.items() if files]
    parsed = [v for v in (_parse_version(raw) for raw in versions) if v is not None and not v.is_prerelease]
    if not parsed:
        return None
    return str(max(parsed))


def _parse_version(value: str | None) -> Version | None:
    if value is None:
        return None
    try:
        return Version(value)
    except InvalidVersion:
        return None


def check_due(state: UpdateState, now: datetime) -> bool:
    return state.last_checked is None or now - state.last_checked >= CHECK_INTERVAL


def _notify(current: str, latest: str, stream: TextIO) -> None:
    stream.write(
        f"\nA new version of checkpipe is available! {current} -> {latest}\n"
        "You can update by running: pip install --upgrade checkpipe\n\n"
    )


def check_for_update(
    settings: RuntimeSettings,
    current_version: str,
    cancel_event: threading.Event,
    *,
    notify: bool = True,
    stream: TextIO | None = None,
) -> str | None:
    """Check the package index for a newer release at most once per ``CHECK_INTERVAL``.

    Returns the newer version when one is available, otherwise ``None``. The
    notice is printed only when ``notify`` is set and the check was not
    cancelled meanwhile.
    """
    if _is_dev_environment():
        logger.debug("skipping update check in a source checkout")
        return None

    state = _load_state(settings)
    now = datetime.now(timezone.utc)
    if not check_due(state, now):
        logger.debug("update check ran at %s - skipping", state.last_checked)
        return None

    remote_version = _fetch_remote_version()
    if cancel_event.is_set():
        logger.debug("update check cancelled")
        return None

    state.last_checked = now
    state.latest_version = remote_version
    state.status = "ok" if remote_version else "error"
    _store_state(settings, state)
    if remote_version is None:
        logger.debug("update check failed to fetch the latest version")
        return None

    current = _parse_version(current_version)
    remote = _parse_version(remote_version)
    if current is None or remote is None or remote <= current:
        logger.debug("checkpipe is up to date current=%s latest=%s", current_version, remote_version)
        return None

    logger.info("newer checkpipe version available current=%s latest=%s", current_version, remote_version)
    if notify and not cancel_event.is_set():
        _notify(current_version, remote_version, stream or sys.stderr)
    return remote_version
