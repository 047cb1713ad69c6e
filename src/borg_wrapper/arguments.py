from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Sequence

from .config import WrapperConfig

ARCHIVE_TIMESTAMP_FORMAT = "%Y%m%dT%H%M%SZ"

DEFAULT_INIT_ARGS = ("--encryption", "repokey-blake2")
DEFAULT_CREATE_ARGS = ("--one-file-system", "--compression", "lz4")
DEFAULT_PRUNE_ARGS = ("--list",)
DEFAULT_CHECK_ARGS = ("--verify-data",)

DRY_RUN_FLAG = "--dry-run"
STATS_FLAG = "--stats"


class Step(str, Enum):
    INIT = "init"
    CREATE = "create"
    PRUNE = "prune"
    CHECK = "check"


_DEFAULTS = {
    Step.INIT: DEFAULT_INIT_ARGS,
    Step.CREATE: DEFAULT_CREATE_ARGS,
    Step.PRUNE: DEFAULT_PRUNE_ARGS,
    Step.CHECK: DEFAULT_CHECK_ARGS,
}


def archive_prefix(host: str) -> str:
    return f"{host}-"


def archive_name(host: str, when: datetime) -> str:
    """Name an archive ``{host}-{UTC timestamp}``, e.g. ``web1-20240102T030405Z``."""
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return f"{archive_prefix(host)}{when.astimezone(timezone.utc).strftime(ARCHIVE_TIMESTAMP_FORMAT)}"


class ArgumentBuilder:
    """Builds the engine argument list for each step of a mode."""

    def __init__(self, config: WrapperConfig, dry_run: bool = False, host: Optional[str] = None) -> None:
        self._config = config
        self._dry_run = dry_run
        self._host = host or config.resolved_host()

    @property
    def host(self) -> str:
        return self._host

    def base_args(self, step: Step) -> List[str]:
        override: Optional[Sequence[str]] = getattr(self._config.arguments, step.value)
        if override is not None:
            return list(override)
        return list(_DEFAULTS[step])

    def init_args(self) -> List[str]:
        return [Step.INIT.value, *self.base_args(Step.INIT), self._config.repository]

    def create_args(self, archive: str) -> List[str]:
        args = [Step.CREATE.value, *self.base_args(Step.CREATE)]
        for pattern in self._config.excludes:
            args.extend(["--exclude", pattern])
        args.append(self._mode_flag())
        args.append(f"{self._config.repository}::{archive}")
        args.extend(self._config.paths)
        return args

    def prune_args(self) -> List[str]:
        retention = self._config.retention
        args = [Step.PRUNE.value, *self.base_args(Step.PRUNE)]
        args.extend(
            [
                "--keep-hourly", str(retention.hourly),
                "--keep-daily", str(retention.daily),
                "--keep-weekly", str(retention.weekly),
                "--keep-monthly", str(retention.monthly),
                "--keep-yearly", str(retention.yearly),
            ]
        )
        args.extend(["--prefix", archive_prefix(self._host)])
        args.append(self._mode_flag())
        args.append(self._config.repository)
        return args

    def check_args(self) -> List[str]:
        return [Step.CHECK.value, *self.base_args(Step.CHECK), self._config.repository]

    def _mode_flag(self) -> str:
        return DRY_RUN_FLAG if self._dry_run else STATS_FLAG


__all__ = [
    "ArgumentBuilder",
    "Step",
    "archive_name",
    "archive_prefix",
    "DRY_RUN_FLAG",
    "STATS_FLAG",
]
