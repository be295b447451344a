"""Environment variables, configuration keys and enumerated values."""

from __future__ import annotations

APP_NAME = "checkpipe"

# environment variables
ENV_INSTALL_DIR = "CHECKPIPE_INSTALL_DIR"
ENV_MOD_LOCATION = "CHECKPIPE_MOD_LOCATION"
ENV_LOG_LEVEL = "CHECKPIPE_LOG_LEVEL"
LEGACY_LOG_LEVEL_ENV_VARS = ("CHECKPIPE_LOG", "CP_LOG")
ENV_DIAGNOSTICS_LEVEL = "CHECKPIPE_DIAGNOSTIC_LEVEL"
ENV_LEGACY_DIAGNOSTICS_LEVEL = "CHECKPIPE_DIAGNOSTICS_LEVEL"
ENV_CLOUD_TOKEN = "CHECKPIPE_CLOUD_TOKEN"
ENV_CLOUD_HOST = "CHECKPIPE_CLOUD_HOST"
ENV_UPDATE_CHECK = "CHECKPIPE_UPDATE_CHECK"
ENV_TELEMETRY = "CHECKPIPE_TELEMETRY"
ENV_MEMORY_MAX_MB = "CHECKPIPE_MEMORY_MAX_MB"

# configuration keys
ARG_INSTALL_DIR = "install_dir"
ARG_MOD_LOCATION = "mod_location"
ARG_LOG_LEVEL = "log_level"
ARG_UPDATE_CHECK = "update_check"
ARG_TELEMETRY = "telemetry"
ARG_MEMORY_MAX_MB = "memory_max_mb"
ARG_CLOUD_HOST = "cloud_host"
ARG_CLOUD_TOKEN = "cloud_token"
ARG_DIAGNOSTICS_LEVEL = "diagnostics_level"

CONFIG_KEY_ACTIVE_COMMAND = "active_command"
CONFIG_KEY_ACTIVE_COMMAND_ARGS = "active_command_args"
CONFIG_KEY_IS_TERMINAL_TTY = "is_terminal_tty"

# enumerated values
TELEMETRY_NONE = "none"
TELEMETRY_INFO = "info"
TELEMETRY_LEVELS = (TELEMETRY_NONE, TELEMETRY_INFO)

LOG_LEVELS = ("trace", "debug", "info", "warn", "error", "off")
DEFAULT_LOG_LEVEL = "warn"

DIAGNOSTICS_LEVELS = ("all", "none")

DEFAULT_CLOUD_HOST = "cloud.checkpipe.io"

# command names with special handling
COMPLETION_COMMAND = "completion"
DAEMON_COMMANDS = frozenset({"daemon"})

# seconds the post-run hook waits for background tasks
TASK_WAIT_TIMEOUT = 0.1
