#!/usr/bin/env python3
"""Entry point for the checkpipe CLI."""

from __future__ import annotations

import argparse
import json
import logging
import os
import signal
import sys
import threading
from textwrap import dedent

import yaml

from checkpipe import __version__
from checkpipe.adapters.packaged_template_source import PackagedTemplateSource
from checkpipe.app.startup import StartupContext, StartupSequencer
from checkpipe.app.template_sync import TemplateSyncService
from checkpipe.constants import APP_NAME, ARG_CLOUD_TOKEN
from checkpipe.utils.log import configure_stream_logger, resolve_log_level
from checkpipe.utils.telemetry import record_event

logger = logging.getLogger(__name__)

REDACTED = "********"

HELP_OVERVIEW = dedent(
    """
    Housekeeping:
      - checkpipe templates list   - install outdated check templates and list them
      - checkpipe config show      - print the effective configuration
      - checkpipe completion bash  - print a shell completion script

    Configuration is read from <install-dir>/config/*.yaml and
    <mod-location>/checkpipe.yaml; CHECKPIPE_* environment variables win.
    """
)

COMPLETION_SCRIPTS = {
    "bash": dedent(
        """
        _checkpipe_completion() {
            local cur="${COMP_WORDS[COMP_CWORD]}"
            if [ "$COMP_CWORD" -eq 1 ]; then
                COMPREPLY=( $(compgen -W "@COMMANDS@" -- "$cur") )
            fi
        }
        complete -F _checkpipe_completion checkpipe
        """
    ).lstrip(),
    "zsh": dedent(
        """
        #compdef checkpipe
        _arguments '1: :(@COMMANDS@)' '*:: :_files'
        """
    ).lstrip(),
}


def _command_names(parser: argparse.ArgumentParser) -> list[str]:
    for action in parser._actions:  # noqa: SLF001 - argparse exposes no public accessor
        if isinstance(action, argparse._SubParsersAction):  # noqa: SLF001
            return sorted(action.choices)
    return []


def _completion_cmd(args: argparse.Namespace, context: StartupContext) -> int:
    commands = " ".join(_command_names(build_parser()))
    sys.stdout.write(COMPLETION_SCRIPTS[args.shell].replace("@COMMANDS@", commands))
    return 0


def _version_cmd(args: argparse.Namespace, context: StartupContext) -> int:
    version = context.settings.cli_version if context.settings is not None else __version__
    print(f"{APP_NAME} v{version}")
    return 0


def _templates_cmd(args: argparse.Namespace, context: StartupContext) -> int:
    assert context.settings is not None and context.config is not None
    service = TemplateSyncService(PackagedTemplateSource(), context.settings)
    try:
        updated = service.ensure_templates()
    except OSError as exc:
        print(f"Error: failed to install check templates: {exc}", file=sys.stderr)
        return 1

    if args.templates_command == "sync":
        if not updated:
            print("Check templates are up to date")
        for name in updated:
            print(f"Updated {name}")
        record_event(context.settings, context.config, "templates.sync", {"updated": updated})
        return 0

    installed = service.installed_versions()
    if not installed:
        print("No templates installed", file=sys.stderr)
        return 1
    for name, version in installed:
        print(f"{name} (version {version or 'unknown'})")
    record_event(context.settings, context.config, "templates.list", {"count": len(installed)})
    return 0


def _config_show_cmd(args: argparse.Namespace, context: StartupContext) -> int:
    config = context.config
    assert config is not None
    payload = config.as_dict()
    if payload.get(ARG_CLOUD_TOKEN):
        payload[ARG_CLOUD_TOKEN] = REDACTED
    if args.sources:
        payload = {key: {"value": value, "source": config.source(key)} for key, value in payload.items()}
    if args.json:
        print(json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False))
    else:
        sys.stdout.write(yaml.safe_dump(payload, sort_keys=True, allow_unicode=True))
    return 0


def _daemon_cmd(args: argparse.Namespace, context: StartupContext) -> int:
    configure_stream_logger(resolve_log_level(), context.execution_id)
    stop = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop.set())
    logger.info("daemon started pid=%d", os.getpid())
    try:
        stop.wait(args.timeout)
    except KeyboardInterrupt:
        logger.info("daemon interrupted")
    logger.info("daemon stopped")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description=HELP_OVERVIEW,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"{APP_NAME} {__version__}")
    parser.add_argument("--install-dir", help="Install directory (default: $CHECKPIPE_INSTALL_DIR or ~/.checkpipe)")
    parser.add_argument("--mod-location", help="Workspace directory (default: current directory)")

    sub = parser.add_subparsers(dest="command", required=True)

    completion_cmd = sub.add_parser("completion", help="Print a shell completion script")
    completion_cmd.add_argument("shell", nargs="?", choices=sorted(COMPLETION_SCRIPTS), default="bash")
    completion_cmd.set_defaults(func=_completion_cmd)

    templates_cmd = sub.add_parser("templates", help="Manage check output templates")
    templates_sub = templates_cmd.add_subparsers(dest="templates_command", required=True)
    templates_list = templates_sub.add_parser("list", help="Install outdated templates and list them")
    templates_list.set_defaults(func=_templates_cmd)
    templates_sync = templates_sub.add_parser("sync", help="Install outdated templates")
    templates_sync.set_defaults(func=_templates_cmd)

    config_cmd = sub.add_parser("config", help="Inspect configuration")
    config_sub = config_cmd.add_subparsers(dest="config_command", required=True)
    config_show = config_sub.add_parser("show", help="Print the effective configuration")
    config_show.add_argument("--json", action="store_true", help="Emit JSON instead of YAML")
    config_show.add_argument("--sources", action="store_true", help="Include the layer each value came from")
    config_show.set_defaults(func=_config_show_cmd)

    version_cmd = sub.add_parser("version", help="Print the checkpipe version")
    version_cmd.set_defaults(func=_version_cmd)

    daemon_cmd = sub.add_parser("daemon", help="Run as a long-lived background service")
    daemon_cmd.add_argument("--timeout", type=float, default=None, help="Stop after this many seconds")
    daemon_cmd.set_defaults(func=_daemon_cmd)

    return parser


def _build_sequencer(args: argparse.Namespace) -> StartupSequencer:
    return StartupSequencer(install_dir=args.install_dir, mod_location=args.mod_location)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    raw_args = list(sys.argv[1:] if argv is None else argv)
    args = parser.parse_args(raw_args)
    sequencer = _build_sequencer(args)
    context = sequencer.pre_run(args.command, raw_args)
    exit_code = 1
    try:
        exit_code = args.func(args, context)
    finally:
        sequencer.post_run(context, exit_code)
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
