"""
Per-location serialization inside one process.

Mutations for the same location take that location's lock; different
locations never contend. Across processes the version compare-and-swap in
the coordinator does the same job, this just saves the retries.

Locks are held weakly: an entry lives only while some caller holds or
waits on it, so the registry does not grow with every location ever seen.
"""
from __future__ import annotations

import threading
import weakref
from contextlib import contextmanager
from typing import Iterator


class LocationLocks:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, location_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(location_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[location_id] = lock
            return lock

    def __len__(self) -> int:
        return len(self._locks)

    @contextmanager
    def hold(self, location_id: str) -> Iterator[None]:
        lock = self._lock_for(location_id)
        with lock:
            yield


location_locks = LocationLocks()
