"""YAML configuration file loader."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from checkpipe.domain.errors import ConfigError, ErrorAndWarnings
from checkpipe.resources import schema_validator
from checkpipe.settings import RuntimeSettings

logger = logging.getLogger(__name__)

CONFIG_SUFFIX = ".yaml"
WORKSPACE_CONFIG_FILE = "checkpipe.yaml"
CONFIG_SCHEMA = "config.schema.json"

# deprecated option -> replacement
DEPRECATED_OPTIONS = {
    "max_memory_mb": "memory_max_mb",
    "check_updates": "update_check",
}


@dataclass
class LoadedConfig:
    options: dict[str, Any] = field(default_factory=dict)
    sources: list[Path] = field(default_factory=list)


def config_files(settings: RuntimeSettings, mod_location: Path | None) -> list[Path]:
    """Return config files in load order; later files override earlier ones."""
    files: list[Path] = []
    if settings.config_dir.is_dir():
        files.extend(
            sorted(p for p in settings.config_dir.iterdir() if p.is_file() and p.suffix == CONFIG_SUFFIX)
        )
    if mod_location is not None:
        workspace = mod_location / WORKSPACE_CONFIG_FILE
        if workspace.is_file():
            files.append(workspace)
    return files


def load_config(settings: RuntimeSettings, mod_location: Path | None) -> tuple[LoadedConfig, ErrorAndWarnings]:
    loaded = LoadedConfig()
    result = ErrorAndWarnings()
    for path in config_files(settings, mod_location):
        logger.debug("loading config file %s", path)
        try:
            general = _load_general_options(path, result)
        except ConfigError as exc:
            result.error = exc
            return loaded, result
        loaded.options.update(general)
        loaded.sources.append(path)
    return loaded, result


def _load_general_options(path: Path, result: ErrorAndWarnings) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text("utf-8"))
    except OSError as exc:
        raise ConfigError(f"failed to read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"failed to parse config file {path}: {exc}") from exc
    if data is None:
        return {}

    errors = sorted(schema_validator(CONFIG_SCHEMA).iter_errors(data), key=lambda err: [str(part) for part in err.absolute_path])
    if errors:
        first = errors[0]
        location = "/".join(str(part) for part in first.absolute_path) or "<root>"
        raise ConfigError(f"invalid config file {path}: {location}: {first.message}")

    general = dict((data.get("options") or {}).get("general") or {})
    for old, new in DEPRECATED_OPTIONS.items():
        if old not in general:
            continue
        result.add_warning(f"{path}: option '{old}' is deprecated - use '{new}'")
        value = general.pop(old)
        general.setdefault(new, value)
    return general
