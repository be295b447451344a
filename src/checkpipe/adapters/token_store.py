"""Saved cloud token cache."""

from __future__ import annotations

from pathlib import Path

from checkpipe.settings import RuntimeSettings


def token_path(settings: RuntimeSettings, cloud_host: str) -> Path:
    return settings.internal_dir / f"{cloud_host}.token"


def load_token(settings: RuntimeSettings, cloud_host: str) -> str:
    """Return the saved token for ``cloud_host`` or ``""`` when none is saved."""
    path = token_path(settings, cloud_host)
    if not path.exists():
        return ""
    return path.read_text("utf-8").strip()
