"""Builds the process configuration from defaults, files and the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping

from checkpipe import constants
from checkpipe.adapters.config_loader import LoadedConfig, load_config
from checkpipe.adapters.token_store import load_token
from checkpipe.domain.config import (
    LAYER_DEFAULTS,
    LAYER_ENVIRONMENT,
    LAYER_FILE,
    LAYER_RESOLVED,
    Config,
    ConfigBuilder,
    coerce_bool,
    coerce_int,
)
from checkpipe.domain.errors import ConfigError, ErrorAndWarnings
from checkpipe.settings import RuntimeSettings
from checkpipe.utils.log import TRACE

logger = logging.getLogger(__name__)

ConfigLoader = Callable[[RuntimeSettings, Path | None], tuple[LoadedConfig, ErrorAndWarnings]]
TokenLoader = Callable[[RuntimeSettings, str], str]

INSTALL_DIR_MODE = 0o755

# (env var, config key, coercion)
ENV_OVERRIDES: tuple[tuple[str, str, Callable[[Any], Any]], ...] = (
    (constants.ENV_INSTALL_DIR, constants.ARG_INSTALL_DIR, str),
    (constants.ENV_MOD_LOCATION, constants.ARG_MOD_LOCATION, str),
    (constants.ENV_UPDATE_CHECK, constants.ARG_UPDATE_CHECK, coerce_bool),
    (constants.ENV_TELEMETRY, constants.ARG_TELEMETRY, str),
    (constants.ENV_MEMORY_MAX_MB, constants.ARG_MEMORY_MAX_MB, coerce_int),
    (constants.ENV_CLOUD_HOST, constants.ARG_CLOUD_HOST, str),
)


@dataclass(frozen=True)
class ActiveCommand:
    name: str
    args: tuple[str, ...] = ()
    is_terminal_tty: bool = False


def default_values(settings: RuntimeSettings, mod_location: Path | None) -> dict[str, Any]:
    return {
        constants.ARG_INSTALL_DIR: str(settings.install_dir),
        constants.ARG_MOD_LOCATION: str(mod_location or Path.cwd()),
        constants.ARG_LOG_LEVEL: constants.DEFAULT_LOG_LEVEL,
        constants.ARG_UPDATE_CHECK: True,
        constants.ARG_TELEMETRY: constants.TELEMETRY_INFO,
        constants.ARG_MEMORY_MAX_MB: 0,
        constants.ARG_CLOUD_HOST: constants.DEFAULT_CLOUD_HOST,
    }


def env_log_level(environ: Mapping[str, str] | None = None) -> str | None:
    """Return the log level set by the current or a legacy env var, if any.

    Empty values are skipped, matching ``resolve_log_level``.
    """
    env = os.environ if environ is None else environ
    for name in (constants.ENV_LOG_LEVEL, *constants.LEGACY_LOG_LEVEL_ENV_VARS):
        if env.get(name):
            return env[name]
    return None


def env_log_level_set(environ: Mapping[str, str] | None = None) -> bool:
    """True when any log-level env var is present, even if empty."""
    env = os.environ if environ is None else environ
    return any(name in env for name in (constants.ENV_LOG_LEVEL, *constants.LEGACY_LOG_LEVEL_ENV_VARS))


def env_values(environ: Mapping[str, str]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for name, key, coerce in ENV_OVERRIDES:
        raw = environ.get(name)
        if raw is None:
            continue
        try:
            values[key] = coerce(raw)
        except ValueError as exc:
            raise ConfigError(f"invalid value of environment variable {name} ({raw}): {exc}") from exc
    log_level = env_log_level(environ)
    if log_level is not None:
        values[constants.ARG_LOG_LEVEL] = log_level
    diagnostics = environ.get(constants.ENV_DIAGNOSTICS_LEVEL, environ.get(constants.ENV_LEGACY_DIAGNOSTICS_LEVEL))
    if diagnostics is not None:
        values[constants.ARG_DIAGNOSTICS_LEVEL] = diagnostics
    return values


def ensure_install_dir(settings: RuntimeSettings) -> None:
    install_dir = settings.install_dir
    logger.log(TRACE, "ensure install dir %s", install_dir)
    if install_dir.exists():
        return
    logger.log(TRACE, "creating install dir")
    try:
        install_dir.mkdir(mode=INSTALL_DIR_MODE, parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigError(f"could not create installation directory: {install_dir}: {exc}") from exc


def resolve_cloud_token(builder: ConfigBuilder, settings: RuntimeSettings, environ: Mapping[str, str], token_loader: TokenLoader) -> None:
    """Resolve the cloud token: the env var wins over a saved token, which wins over config files."""
    cloud_host = str(builder.peek(constants.ARG_CLOUD_HOST, constants.DEFAULT_CLOUD_HOST))
    try:
        saved = token_loader(settings, cloud_host)
    except OSError as exc:
        raise ConfigError(f"failed to load saved token for {cloud_host}: {exc}") from exc
    if saved:
        builder.set(LAYER_RESOLVED, constants.ARG_CLOUD_TOKEN, saved)
    env_token = environ.get(constants.ENV_CLOUD_TOKEN)
    if env_token:
        builder.set(LAYER_RESOLVED, constants.ARG_CLOUD_TOKEN, env_token)


def validate_config(builder: ConfigBuilder, environ: Mapping[str, str]) -> ErrorAndWarnings:
    result = ErrorAndWarnings()

    telemetry = str(builder.peek(constants.ARG_TELEMETRY, ""))
    if telemetry not in constants.TELEMETRY_LEVELS:
        result.error = ConfigError(
            f"invalid value of 'telemetry' ({telemetry}), must be one of: {', '.join(constants.TELEMETRY_LEVELS)}"
        )
        return result

    log_level = str(builder.peek(constants.ARG_LOG_LEVEL, "")).lower()
    if log_level not in constants.LOG_LEVELS:
        result.error = ConfigError(
            f"invalid value of 'log_level' ({log_level}), must be one of: {', '.join(constants.LOG_LEVELS)}"
        )
        return result

    if constants.ENV_LEGACY_DIAGNOSTICS_LEVEL in environ:
        result.add_warning(
            f"Environment variable {constants.ENV_LEGACY_DIAGNOSTICS_LEVEL} is deprecated - use {constants.ENV_DIAGNOSTICS_LEVEL}"
        )
    diagnostics = builder.peek(constants.ARG_DIAGNOSTICS_LEVEL)
    if diagnostics is not None and str(diagnostics).lower() not in constants.DIAGNOSTICS_LEVELS:
        result.error = ConfigError(
            f"invalid value of {constants.ENV_DIAGNOSTICS_LEVEL} ({diagnostics}), must be one of: "
            f"{', '.join(constants.DIAGNOSTICS_LEVELS)}"
        )
    return result


def initialise_config(
    settings: RuntimeSettings,
    command: ActiveCommand,
    *,
    mod_location: Path | None = None,
    environ: Mapping[str, str] | None = None,
    config_loader: ConfigLoader = load_config,
    token_loader: TokenLoader = load_token,
) -> tuple[Config | None, ErrorAndWarnings]:
    """Build the configuration; returns ``(None, errors)`` on the first fatal error."""
    env = os.environ if environ is None else environ
    builder = ConfigBuilder()
    builder.update(LAYER_DEFAULTS, default_values(settings, mod_location))

    try:
        ensure_install_dir(settings)
    except ConfigError as exc:
        return None, ErrorAndWarnings.from_error(exc)

    loaded, result = config_loader(settings, mod_location)
    if result.failed:
        return None, result
    builder.update(LAYER_FILE, loaded.options)

    try:
        builder.update(LAYER_ENVIRONMENT, env_values(env))
        resolve_cloud_token(builder, settings, env, token_loader)
    except ConfigError as exc:
        result.error = exc
        return None, result

    builder.update(
        LAYER_RESOLVED,
        {
            constants.CONFIG_KEY_ACTIVE_COMMAND: command.name,
            constants.CONFIG_KEY_ACTIVE_COMMAND_ARGS: list(command.args),
            constants.CONFIG_KEY_IS_TERMINAL_TTY: command.is_terminal_tty,
        },
    )

    result.merge(validate_config(builder, env))
    if result.failed:
        return None, result
    return builder.build(), result


def log_level_needs_reset(config: Config, environ: Mapping[str, str] | None = None) -> bool:
    """True when no log-level env var is set (an empty one counts) but a config file sets a level."""
    return not env_log_level_set(environ) and constants.ARG_LOG_LEVEL in config.layer(LAYER_FILE)
