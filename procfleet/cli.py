"""
procfleet CLI.

Usage:
    procfleet start                          # Run every process in ./Procfile
    procfleet start web                      # Run only the web process
    procfleet start -f Procfile.test -e .env.test
    procfleet start -c web=2,worker=1 -p 8000 -r
    procfleet check                          # Validate the Procfile
    procfleet run -- ./manage.py migrate     # One-off command with the env file applied
    procfleet version
"""

import argparse
import dataclasses
import logging
import signal
import subprocess
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .concurrency import parse_concurrency
from .config import Config, ConfigurationError, config
from .env import child_environment, read_env
from .logs import setup_logging
from .outlet import OutletFactory
from .procfile import Procfile, read_procfile
from .supervisor import Supervisor

logger = logging.getLogger(__name__)


# --- Helpers ---


def _config_from_args(args: argparse.Namespace) -> Config:
    """Layer command line flags over the environment-derived defaults."""
    overrides = {}
    if getattr(args, "procfile", None):
        overrides["procfile"] = Path(args.procfile)
    if getattr(args, "env", None):
        overrides["env_file"] = Path(args.env)
    if getattr(args, "port", None) is not None:
        overrides["port"] = args.port
    if getattr(args, "restart", False):
        overrides["restart"] = True
    return dataclasses.replace(config, **overrides)


def _padding(procfile: Procfile, concurrency: dict[str, int]) -> int:
    """Width of the widest display name, e.g. ``worker.10``."""
    most = max(concurrency.values(), default=1)
    return procfile.longest_process_name() + 1 + len(str(max(most, 1)))


def _load(cfg: Config, outlets: OutletFactory) -> tuple[Procfile, dict[str, str]]:
    try:
        procfile = read_procfile(cfg.procfile)
        env = read_env(cfg.get_env_file(), required=cfg.env_file is not None)
    except ConfigurationError as e:
        outlets.error_output(str(e))
    return procfile, env


# --- Commands ---


def cmd_start(args: argparse.Namespace) -> int:
    try:
        cfg = _config_from_args(args)
    except ConfigurationError as e:
        OutletFactory().error_output(str(e))

    setup_logging(cfg)
    procfile, env = _load(cfg, OutletFactory())
    logger.info(f"Loaded {len(procfile)} process types from {cfg.procfile}")

    try:
        concurrency = parse_concurrency(args.concurrency or "")
    except ConfigurationError as e:
        OutletFactory().error_output(str(e))

    outlets = OutletFactory(padding=_padding(procfile, concurrency))
    supervisor = Supervisor.from_config(cfg, outlets, env)

    supervisor.install_signal_handlers()
    supervisor.start_interrupt_monitor()

    try:
        replicas = supervisor.start(procfile, concurrency, only=args.process)
    except ConfigurationError as e:
        outlets.error_output(str(e))

    if not replicas:
        outlets.system_output("no processes to run")
        supervisor.signal_shutdown()

    supervisor.wait()
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    cfg = _config_from_args(args)
    outlets = OutletFactory(stream=sys.stdout, color=False)
    try:
        procfile = read_procfile(cfg.procfile)
    except ConfigurationError as e:
        outlets.error_output(str(e))

    print(f"valid procfile detected ({', '.join(procfile.names())})")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    cfg = _config_from_args(args)
    setup_logging(cfg)
    outlets = OutletFactory(color=False)

    command = list(args.command)
    if command and command[0] == "--":
        command = command[1:]
    if not command:
        outlets.error_output("no command given")

    try:
        env = read_env(cfg.get_env_file(), required=cfg.env_file is not None)
    except ConfigurationError as e:
        outlets.error_output(str(e))

    child = subprocess.Popen(command, env=child_environment(env))

    # ctrl-c reaches the child directly; the parent just waits for its exit code.
    previous = signal.signal(signal.SIGINT, signal.SIG_IGN)
    try:
        return child.wait()
    finally:
        signal.signal(signal.SIGINT, previous)


def cmd_version(args: argparse.Namespace) -> int:
    print(__version__)
    return 0


# --- Parser ---


def _add_input_options(parser: argparse.ArgumentParser, with_env: bool = True):
    parser.add_argument("-f", "--procfile", help="Procfile to read (default: ./Procfile)")
    if with_env:
        parser.add_argument("-e", "--env", help="env file (default: .env next to the Procfile)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="procfleet",
        description="Run the processes of a Procfile as one supervised group.",
    )
    subparsers = parser.add_subparsers(dest="command_name", metavar="COMMAND")
    subparsers.required = True

    start = subparsers.add_parser("start", help="Start the application")
    start.add_argument("process", nargs="?", help="run only this process type")
    _add_input_options(start)
    start.add_argument("-c", "--concurrency", default="", help="replicas per process, e.g. web=2,worker=1")
    start.add_argument("-p", "--port", type=int, help=f"base port (default: {config.port})")
    start.add_argument("-r", "--restart", action="store_true", help="restart processes that exit")
    start.set_defaults(func=cmd_start)

    check = subparsers.add_parser("check", help="Validate the Procfile")
    _add_input_options(check, with_env=False)
    check.set_defaults(func=cmd_check)

    run = subparsers.add_parser("run", help="Run a command with the env file applied")
    _add_input_options(run)
    run.add_argument("command", nargs=argparse.REMAINDER, help="command to run")
    run.set_defaults(func=cmd_run)

    version = subparsers.add_parser("version", help="Show the version")
    version.set_defaults(func=cmd_version)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
