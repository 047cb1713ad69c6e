from __future__ import annotations

import logging
import os
import shlex
import subprocess
from typing import Dict, Mapping, Optional, Sequence

from .exit_codes import ExitCode

LOG = logging.getLogger(__name__)

# Environment variables the engine reads implicitly.
ENV_REPOSITORY = "BORG_REPO"
ENV_PASSPHRASE = "BORG_PASSPHRASE"
ENV_RSH = "BORG_RSH"


class Engine:
    """Runs the external backup engine as a blocking child process."""

    def __init__(self, binary: str = "borg", base_env: Optional[Mapping[str, str]] = None) -> None:
        self.binary = binary
        self._base_env: Dict[str, str] = dict(base_env) if base_env is not None else dict(os.environ)

    def run(self, args: Sequence[str], env: Optional[Mapping[str, str]] = None) -> int:
        cmd = [self.binary, *args]
        child_env = dict(self._base_env)
        if env:
            child_env.update(env)

        LOG.info("Running %s", " ".join(shlex.quote(part) for part in cmd))
        try:
            process = subprocess.Popen(cmd, env=child_env)
        except FileNotFoundError:
            LOG.error("Engine binary not found: %s", self.binary)
            return ExitCode.COMMAND_NOT_FOUND

        try:
            code = process.wait()
        except BaseException:
            # Interrupted while waiting: stop the child before unwinding.
            LOG.warning("Terminating %s (pid %d)", self.binary, process.pid)
            process.terminate()
            process.wait()
            raise

        if code < 0:
            # Popen reports death by signal N as -N; use the shell's 128 + N.
            LOG.error("%s was killed by signal %d", self.binary, -code)
            return ExitCode.SIGNAL_BASE - code
        return code


__all__ = ["Engine", "ENV_PASSPHRASE", "ENV_REPOSITORY", "ENV_RSH"]
