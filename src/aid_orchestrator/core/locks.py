from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List


class KeyedLock:
    """
    One mutex per identifier. Entries are dropped once no caller holds or
    waits on them, so the table only grows with in-flight identifiers.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._users: Dict[str, int] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._users[key] = self._users.get(key, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._users[key] -= 1
                if self._users[key] == 0:
                    del self._users[key]
                    del self._locks[key]

    def active_keys(self) -> List[str]:
        with self._guard:
            return list(self._locks)
