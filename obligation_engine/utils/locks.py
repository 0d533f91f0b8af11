"""In-process keyed locks serializing work on one entry or recurrence group"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class KeyedLocks:
    """
    One mutex per key, created on demand and dropped when no longer held.

    Row locks (SELECT ... FOR UPDATE) cover PostgreSQL deployments; these cover
    concurrent requests within a process, including SQLite runs where row
    locking is unavailable.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._waiters: Dict[str, int] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._waiters[key] = self._waiters.get(key, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._waiters[key] -= 1
                if self._waiters[key] == 0:
                    del self._waiters[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
