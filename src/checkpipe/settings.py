"""Runtime settings for the checkpipe install directory."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from checkpipe import __version__
from checkpipe.constants import ENV_INSTALL_DIR


@dataclass(frozen=True)
class RuntimeSettings:
    install_dir: Path
    cli_version: str = __version__

    @property
    def template_dir(self) -> Path:
        return self.install_dir / "check" / "templates"

    @property
    def log_dir(self) -> Path:
        return self.install_dir / "logs"

    @property
    def config_dir(self) -> Path:
        return self.install_dir / "config"

    @property
    def internal_dir(self) -> Path:
        return self.install_dir / "internal"


def _default_install_dir() -> Path:
    return Path.home() / ".checkpipe"


def resolve_install_dir(explicit: str | os.PathLike[str] | None = None) -> Path:
    if explicit:
        return Path(explicit).expanduser()
    env = os.environ.get(ENV_INSTALL_DIR)
    if env:
        return Path(env).expanduser()
    return _default_install_dir()


def load_settings(install_dir: str | os.PathLike[str] | None = None) -> RuntimeSettings:
    return RuntimeSettings(install_dir=resolve_install_dir(install_dir))
