"""Exit statuses produced by the wrapper itself.

Any other non-zero status is the failing engine invocation's own code.
"""
from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    USAGE_ERROR = 1
    COMMAND_NOT_FOUND = 127
    SIGNAL_BASE = 128


__all__ = ["ExitCode"]
