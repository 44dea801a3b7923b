"""In-process mutual exclusion per season identity."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from domain.ratings.common import SeasonKey


class SeasonLockRegistry:
    """Hands out one re-entrant lock per SeasonKey.

    Writers for the same season serialize on it; different seasons never
    contend. The database row lock taken by the ledger covers other processes.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[SeasonKey, threading.RLock] = {}

    def lock_for(self, key: SeasonKey) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: SeasonKey) -> Iterator[None]:
        lock = self.lock_for(key)
        with lock:
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


__all__ = ["SeasonLockRegistry"]
