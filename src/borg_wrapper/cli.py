from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, NoReturn, Optional, Sequence

from . import __version__
from .config import ConfigurationError, WrapperConfig, load_config
from .errors import UsageError
from .exit_codes import ExitCode
from .logger import configure_logging
from .orchestrator import ModeOrchestrator, parse_mode, validate_arguments

DEFAULT_CONFIG_PATH = "/etc/borg-wrapper/config.yaml"


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(ExitCode.USAGE_ERROR, f"{self.prog}: error: {message}\n")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = _ArgumentParser(
        prog="borg-wrapper",
        description="Run borg init, backup (create + prune), verify or exec against one repository.",
    )
    parser.add_argument(
        "-c",
        "--config",
        default=os.getenv("BORG_WRAPPER_CONFIG", DEFAULT_CONFIG_PATH),
        help="Path to configuration YAML file.",
    )
    parser.add_argument(
        "-d",
        "--dry-run",
        action="store_true",
        help="Simulate create and prune without changing the repository.",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL"),
        help="Log level (default: logging.level from the configuration, else INFO).",
    )
    parser.add_argument("mode", nargs="?", help="init, backup, verify or exec.")
    parser.add_argument(
        "args",
        nargs=argparse.REMAINDER,
        help="Engine arguments, only accepted by exec.",
    )
    return parser.parse_args(argv)


def trailing_arguments(argv: Sequence[str], mode: Optional[str], remainder: List[str]) -> List[str]:
    """Return the tokens after MODE exactly as given.

    argparse swallows a ``--`` placed directly after MODE; exec forwards it.
    """
    cut = len(argv) - len(remainder)
    if cut >= 2 and argv[cut - 1] == "--" and argv[cut - 2] == mode and list(argv[cut:]) == remainder:
        return ["--", *remainder]
    return list(remainder)


def load_configuration(path: Path) -> WrapperConfig:
    try:
        return load_config(path)
    except ConfigurationError as exc:
        raise SystemExit(f"Configuration error: {exc}") from exc


def main(argv: Optional[Sequence[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    args = parse_args(argv)
    args.args = trailing_arguments(argv, args.mode, args.args)
    configure_logging(args.log_level or "INFO")

    try:
        mode = parse_mode(args.mode)
        validate_arguments(mode, args.args)
    except UsageError as exc:
        logging.error("Usage error: %s (exit code %d)", exc, ExitCode.USAGE_ERROR)
        return ExitCode.USAGE_ERROR

    config = load_configuration(Path(args.config).expanduser())
    if not args.log_level:
        configure_logging(config.logging.level)

    orchestrator = ModeOrchestrator(config=config, dry_run=args.dry_run)
    return int(orchestrator.run(mode, args.args))


if __name__ == "__main__":
    sys.exit(main())
