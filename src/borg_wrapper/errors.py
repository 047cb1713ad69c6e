from __future__ import annotations


class WrapperError(Exception):
    """Base class for failures raised by the wrapper itself."""


class UsageError(WrapperError):
    """Raised when the requested mode or its arguments are invalid."""


class LockError(WrapperError):
    """Raised when the repository lock cannot be created or taken."""


class LockContention(LockError):
    """Raised when another process already holds the repository lock."""

    def __init__(self, identity: str, holder: str = "") -> None:
        message = f"Repository '{identity}' is locked by another run"
        if holder:
            message = f"{message} (pid {holder})"
        super().__init__(message)
        self.identity = identity
        self.holder = holder


class RateLimitError(WrapperError, ValueError):
    """Raised when a bandwidth limit string is not a recognised magnitude."""
