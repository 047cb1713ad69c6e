from __future__ import annotations

import logging
import os
import re
import shlex
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .errors import RateLimitError

LOG = logging.getLogger(__name__)

DEFAULT_LIMITER = "pv"
SHIM_PREFIX = "borg-wrapper-rsh-"

_RATE_RE = re.compile(r"([0-9]+)([KMGT]?)")
_UNIT_POWERS = {"": 0, "K": 1, "M": 2, "G": 3, "T": 4}


def parse_rate(value: Union[str, int]) -> int:
    """Convert ``N``, ``NK``, ``NM``, ``NG`` or ``NT`` into bytes per second."""
    match = _RATE_RE.fullmatch(str(value))
    if not match:
        raise RateLimitError(f"Invalid bandwidth limit '{value}': expected N, NK, NM, NG or NT")
    number, unit = match.groups()
    return int(number) * 1024 ** _UNIT_POWERS[unit]


@dataclass
class ThrottleShim:
    """Executable that pipes the transport's stdin through the rate limiter."""

    path: Path
    bytes_per_second: int

    def remove(self) -> None:
        if self.path.exists():
            LOG.debug("Removing throttle shim %s", self.path)
        self.path.unlink(missing_ok=True)


def render_shim(limiter_path: str, bytes_per_second: int, transport_command: str) -> str:
    # transport_command is a command template, so it is inserted unquoted.
    return (
        "#!/bin/sh\n"
        f"{shlex.quote(limiter_path)} -q -L {bytes_per_second} | {transport_command} \"$@\"\n"
    )


def install_throttle(
    bytes_per_second: int,
    transport_command: str,
    directory: Optional[Path] = None,
    limiter: str = DEFAULT_LIMITER,
) -> Optional[ThrottleShim]:
    limiter_path = shutil.which(limiter)
    if limiter_path is None:
        LOG.warning(
            "Rate limiter '%s' not found; continuing without bandwidth limit of %d B/s",
            limiter,
            bytes_per_second,
        )
        return None

    fd, name = tempfile.mkstemp(prefix=SHIM_PREFIX, suffix=".sh", dir=str(directory) if directory else None)
    shim = ThrottleShim(path=Path(name), bytes_per_second=bytes_per_second)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(render_shim(limiter_path, bytes_per_second, transport_command))
        os.chmod(name, 0o700)
    except BaseException:
        shim.remove()
        raise

    LOG.info("Limiting transport bandwidth to %d B/s via %s", bytes_per_second, shim.path)
    return shim


__all__ = ["ThrottleShim", "install_throttle", "parse_rate", "render_shim"]
