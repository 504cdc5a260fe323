"""Spin locks owned by a thread and sleep locks owned by a process id."""

from __future__ import annotations

import threading
from typing import Optional


class LockError(RuntimeError):
    """A lock was used by a holder that does not own it."""


class SpinLock:
    """Mutual exclusion lock held by one thread at a time; not reentrant."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._owner: Optional[int] = None

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @property
    def owner(self) -> Optional[int]:
        """Identifier of the thread holding the lock, if any."""
        return self._owner

    def acquire(self) -> None:
        if self.holding():
            raise LockError("acquire")
        self._lock.acquire()
        self._owner = threading.get_ident()

    def release(self) -> None:
        if not self.holding():
            raise LockError("release")
        self._owner = None
        self._lock.release()

    def holding(self) -> bool:
        """Whether the calling thread holds the lock."""
        return self._lock.locked() and self._owner == threading.get_ident()

    def __enter__(self) -> "SpinLock":
        self.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()


class SleepLock:
    """Long-term lock; waiters block until it is released."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._guard = threading.Condition(threading.Lock())
        self._locked = False
        self._pid = 0

    @property
    def locked(self) -> bool:
        return self._locked

    @property
    def pid(self) -> int:
        """Process id of the holder, 0 when free."""
        return self._pid

    def acquire(self, pid: int) -> None:
        with self._guard:
            while self._locked:
                self._guard.wait()
            self._locked = True
            self._pid = pid

    def release(self) -> None:
        with self._guard:
            self._locked = False
            self._pid = 0
            self._guard.notify_all()

    def holding(self, pid: int) -> bool:
        """Whether the process pid holds the lock."""
        with self._guard:
            return self._locked and self._pid == pid