from __future__ import annotations

import logging
import signal
from typing import Any, Callable, Dict, Optional, Tuple

from .exit_codes import ExitCode
from .locks import RepositoryLock
from .ratelimit import ThrottleShim

LOG = logging.getLogger(__name__)

HANDLED_SIGNALS: Tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP)


class SignalReceived(BaseException):
    """Raised from a signal handler so the run unwinds through cleanup."""

    def __init__(self, signum: int) -> None:
        self.signum = signum
        super().__init__(f"Received {self.signame}")

    @property
    def signame(self) -> str:
        try:
            return signal.Signals(self.signum).name
        except ValueError:
            return f"signal {self.signum}"

    @property
    def exit_code(self) -> int:
        return ExitCode.SIGNAL_BASE + self.signum


def raising_signal_handler(signum: int, _frame: Optional[object]) -> None:
    raise SignalReceived(signum)


class CleanupRegistry:
    """Owns the transient resources of one run and releases them exactly once.

    Used as a context manager: entering arms the signal handlers, leaving (for
    any reason) runs :meth:`run_cleanup`. Exceptions are never suppressed.
    """

    def __init__(self, signals: Tuple[signal.Signals, ...] = HANDLED_SIGNALS) -> None:
        self._signals = signals
        self._previous: Dict[int, Any] = {}
        self._lock: Optional[RepositoryLock] = None
        self._shim: Optional[ThrottleShim] = None
        self._armed = False
        self._done = False

    @property
    def lock(self) -> Optional[RepositoryLock]:
        return self._lock

    @property
    def shim(self) -> Optional[ThrottleShim]:
        return self._shim

    def arm(self, handler: Callable[[int, Optional[object]], None] = raising_signal_handler) -> None:
        if self._armed:
            return
        for signum in self._signals:
            self._previous[signum] = signal.signal(signum, handler)
        self._armed = True

    def register_lock(self, lock: RepositoryLock) -> RepositoryLock:
        self._lock = lock
        return lock

    def register_shim(self, shim: ThrottleShim) -> ThrottleShim:
        self._shim = shim
        return shim

    def run_cleanup(self) -> None:
        if self._done:
            return
        # A second signal must not re-enter cleanup or change the outcome.
        for signum in self._previous:
            try:
                signal.signal(signum, signal.SIG_IGN)
            except SignalReceived:
                # Delivered before it was ignored; the outcome is already decided.
                signal.signal(signum, signal.SIG_IGN)
        self._done = True
        try:
            if self._shim is not None:
                self._shim.remove()
                self._shim = None
        finally:
            try:
                if self._lock is not None:
                    self._lock.release()
                    self._lock = None
            finally:
                self._disarm()

    def _disarm(self) -> None:
        for signum, previous in self._previous.items():
            signal.signal(signum, previous if previous is not None else signal.SIG_DFL)
        self._previous.clear()
        self._armed = False

    def __enter__(self) -> "CleanupRegistry":
        self.arm()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.run_cleanup()


__all__ = ["CleanupRegistry", "SignalReceived", "raising_signal_handler", "HANDLED_SIGNALS"]
