"""Per-repository file locks so only one run touches a repository at a time."""
from __future__ import annotations

import fcntl
import hashlib
import logging
import os
from pathlib import Path
from typing import IO, Optional

from .errors import LockContention, LockError

LOG = logging.getLogger(__name__)


def lock_key(identity: str) -> str:
    return hashlib.sha256(identity.encode("utf-8")).hexdigest()


def lock_path_for(identity: str, lock_dir: Path) -> Path:
    return Path(lock_dir) / f"{lock_key(identity)}.lock"


class RepositoryLock:
    """Advisory, non-blocking ``flock`` keyed by a hash of the repository identity."""

    def __init__(self, identity: str, lock_dir: Path) -> None:
        self.identity = identity
        self.path = lock_path_for(identity, lock_dir)
        self._fh: Optional[IO[str]] = None

    @property
    def held(self) -> bool:
        return self._fh is not None

    def acquire(self) -> "RepositoryLock":
        if self._fh is not None:
            return self

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise LockError(f"Cannot create lock directory {self.path.parent}: {exc}") from exc

        while True:
            try:
                fh = open(self.path, "a+", encoding="utf-8")
            except OSError as exc:
                raise LockError(f"Cannot open lock file {self.path}: {exc}") from exc
            try:
                fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                fh.seek(0)
                holder = fh.read().strip()
                fh.close()
                raise LockContention(self.identity, holder) from None

            # A previous holder unlinks the file on release; make sure we locked the live one.
            if self._is_current(fh):
                break
            fh.close()

        fh.seek(0)
        fh.truncate(0)
        fh.write(str(os.getpid()))
        fh.flush()
        self._fh = fh
        LOG.debug("Acquired lock %s for %s", self.path, self.identity)
        return self

    def release(self) -> None:
        fh = self._fh
        if fh is None:
            return
        self._fh = None
        try:
            if self._is_current(fh):
                self.path.unlink(missing_ok=True)
        finally:
            # Closing the descriptor drops the flock.
            fh.close()
        LOG.debug("Released lock %s", self.path)

    def _is_current(self, fh: IO[str]) -> bool:
        try:
            on_disk = os.stat(self.path)
        except FileNotFoundError:
            return False
        opened = os.fstat(fh.fileno())
        return (on_disk.st_dev, on_disk.st_ino) == (opened.st_dev, opened.st_ino)

    def __enter__(self) -> "RepositoryLock":
        return self.acquire()

    def __exit__(self, *exc_info: object) -> None:
        self.release()


def acquire_lock(identity: str, lock_dir: Path) -> RepositoryLock:
    return RepositoryLock(identity, lock_dir).acquire()


def release_lock(lock: Optional[RepositoryLock]) -> None:
    if lock is not None:
        lock.release()


__all__ = ["RepositoryLock", "acquire_lock", "release_lock", "lock_key", "lock_path_for"]
