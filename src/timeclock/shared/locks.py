import threading
from typing import Dict


class WorkerLockRegistry:
    """One mutex per worker for local cache read-modify-write cycles."""

    def __init__(self):
        self._locks: Dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    def for_worker(self, worker_id: str) -> threading.Lock:
        with self._lock:
            lock = self._locks.get(worker_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[worker_id] = lock
            return lock
