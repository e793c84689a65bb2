"""
Per-key locks serializing work on a single identity.

Each service owns its own table, so isolated instances never contend.
A key's lock lives only while someone holds or waits on it.
Single-process only: separate processes or hosts need a shared lock
service instead.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List


class KeyedLocks:
    def __init__(self):
        # key -> [lock, holders and waiters]
        self._locks: Dict[str, List] = {}
        self._master = threading.Lock()

    def _acquire_entry(self, key: str) -> threading.RLock:
        with self._master:
            entry = self._locks.get(key)
            if entry is None:
                entry = [threading.RLock(), 0]
                self._locks[key] = entry
            entry[1] += 1
            return entry[0]

    def _release_entry(self, key: str) -> None:
        with self._master:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        lock = self._acquire_entry(key)
        try:
            with lock:
                yield
        finally:
            self._release_entry(key)

    def __len__(self) -> int:
        with self._master:
            return len(self._locks)
