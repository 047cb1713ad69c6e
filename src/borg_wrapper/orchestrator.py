from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Union

from .arguments import ArgumentBuilder, Step, archive_name
from .cleanup import CleanupRegistry, SignalReceived
from .config import WrapperConfig
from .engine import ENV_PASSPHRASE, ENV_REPOSITORY, ENV_RSH, Engine
from .errors import LockContention, LockError, RateLimitError, UsageError
from .exit_codes import ExitCode
from .locks import RepositoryLock
from .ratelimit import install_throttle, parse_rate

LOG = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class Mode(str, Enum):
    INIT = "init"
    BACKUP = "backup"
    VERIFY = "verify"
    EXEC = "exec"


def parse_mode(token: Optional[str]) -> Mode:
    if not token:
        raise UsageError("No mode given; expected one of: " + ", ".join(m.value for m in Mode))
    try:
        return Mode(token)
    except ValueError:
        raise UsageError(
            f"Unknown mode '{token}'; expected one of: " + ", ".join(m.value for m in Mode)
        ) from None


def validate_arguments(mode: Mode, args: Sequence[str]) -> None:
    if mode is Mode.EXEC:
        if not args:
            raise UsageError("Mode 'exec' requires at least one engine argument")
        return
    if args:
        raise UsageError(f"Mode '{mode.value}' takes no arguments, got: {' '.join(args)}")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ModeOrchestrator:
    """Runs one mode against the configured repository under its lock."""

    def __init__(
        self,
        config: WrapperConfig,
        engine: Optional[Engine] = None,
        dry_run: bool = False,
        clock: Optional[Clock] = None,
    ) -> None:
        self._config = config
        self._engine = engine or Engine(config.engine)
        self._dry_run = dry_run
        self._clock = clock or _utcnow
        self._builder = ArgumentBuilder(config, dry_run=dry_run)

    def run(self, mode: Union[Mode, str, None], args: Sequence[str] = ()) -> int:
        args = list(args)
        try:
            selected = mode if isinstance(mode, Mode) else parse_mode(mode)
            validate_arguments(selected, args)
        except UsageError as exc:
            LOG.error("Usage error: %s (exit code %d)", exc, ExitCode.USAGE_ERROR)
            return ExitCode.USAGE_ERROR

        try:
            rate = parse_rate(self._config.bwlimit)
        except RateLimitError as exc:
            LOG.error("%s (exit code %d)", exc, ExitCode.USAGE_ERROR)
            return ExitCode.USAGE_ERROR

        with CleanupRegistry() as cleanup:
            try:
                return self._run_locked(selected, args, rate, cleanup)
            except SignalReceived as exc:
                LOG.error("Received %s; cleaning up (exit code %d)", exc.signame, exc.exit_code)
                return exc.exit_code

    def _run_locked(self, mode: Mode, args: List[str], rate: int, cleanup: CleanupRegistry) -> int:
        lock = cleanup.register_lock(RepositoryLock(self._config.repository, self._config.lock_dir))
        try:
            lock.acquire()
        except LockContention as exc:
            LOG.error("%s; refusing to run (exit code %d)", exc, ExitCode.USAGE_ERROR)
            return ExitCode.USAGE_ERROR
        except LockError as exc:
            LOG.error("%s (exit code %d)", exc, ExitCode.USAGE_ERROR)
            return ExitCode.USAGE_ERROR

        try:
            return self._dispatch(mode, args, rate, cleanup)
        except OSError as exc:
            LOG.error("Run %s aborted: %s (exit code %d)", mode.value, exc, ExitCode.USAGE_ERROR)
            return ExitCode.USAGE_ERROR

    def _dispatch(self, mode: Mode, args: List[str], rate: int, cleanup: CleanupRegistry) -> int:
        env = self._engine_environment(rate, cleanup)
        LOG.info("Starting %s for %s", mode.value, self._config.repository)

        if mode is Mode.INIT:
            return self._step(Step.INIT, self._builder.init_args(), env)
        if mode is Mode.BACKUP:
            return self._backup(env)
        if mode is Mode.VERIFY:
            return self._step(Step.CHECK, self._builder.check_args(), env)
        return self._exec(args, env)

    def _backup(self, env: Dict[str, str]) -> int:
        archive = archive_name(self._builder.host, self._clock())
        code = self._step(Step.CREATE, self._builder.create_args(archive), env)
        if code != 0:
            LOG.error("Skipping prune because create failed")
            return code
        return self._step(Step.PRUNE, self._builder.prune_args(), env)

    def _exec(self, args: List[str], env: Dict[str, str]) -> int:
        exec_env = dict(env)
        exec_env[ENV_REPOSITORY] = self._config.repository
        code = self._engine.run(args, env=exec_env)
        if code != 0:
            LOG.error("Step exec failed with exit code %d", code)
        return code

    def _step(self, step: Step, args: List[str], env: Dict[str, str]) -> int:
        code = self._engine.run(args, env=env)
        if code != 0:
            LOG.error("Step %s failed with exit code %d", step.value, code)
        else:
            LOG.info("Step %s completed", step.value)
        return code

    def _engine_environment(self, rate: int, cleanup: CleanupRegistry) -> Dict[str, str]:
        env: Dict[str, str] = {}
        passphrase = self._config.resolved_passphrase()
        if passphrase is not None:
            env[ENV_PASSPHRASE] = passphrase

        transport = self._config.transport_command
        if rate:
            shim = install_throttle(rate, transport)
            if shim is not None:
                cleanup.register_shim(shim)
                transport = str(shim.path)
        env[ENV_RSH] = transport
        return env


__all__ = ["Mode", "ModeOrchestrator", "parse_mode", "validate_arguments"]
