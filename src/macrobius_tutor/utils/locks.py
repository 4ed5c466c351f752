from __future__ import annotations

import threading
from typing import Dict


class KeyedLocks:
    """Hand out one re-entrant lock per key (learner id, session id).

    Read-modify-write sequences on the same key are serialised while different keys
    proceed independently. Keys whose state has become terminal can be released with
    `discard` so the table does not grow with every session ever seen.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def lock_for(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    def discard(self, key: str) -> None:
        """Forget the lock for `key`; only safe once nothing can change that key's state again."""
        with self._guard:
            self._locks.pop(key, None)

    def __contains__(self, key: str) -> bool:
        with self._guard:
            return key in self._locks

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
