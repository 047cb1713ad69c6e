"""Locking, throttling borg wrapper: init, backup, verify and exec modes."""

from __future__ import annotations

__version__ = "1.0.0"

from .config import WrapperConfig, load_config  # noqa: E402,F401
from .orchestrator import Mode, ModeOrchestrator  # noqa: E402,F401
