from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Send wrapper diagnostics to stderr; stdout belongs to the engine."""
    numeric_level = logging.getLevelName(str(level).upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_borg_wrapper", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._borg_wrapper = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(numeric_level)


__all__ = ["configure_logging", "LOG_FORMAT"]
