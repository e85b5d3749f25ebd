import threading
from contextlib import contextmanager
from typing import Dict, Optional

from shuttle.exceptions import TripBusy


class TripLockRegistry:
    """In-process mutex per trip id.

    Serialises booking mutations of a single trip inside one worker process.
    Across processes the Trip row lock (SELECT ... FOR UPDATE) taken inside
    the transaction does the same job.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[int, threading.Lock] = {}

    def _lock_for(self, trip_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(trip_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[trip_id] = lock
            return lock

    @contextmanager
    def hold(self, trip_id: int, timeout: Optional[float] = None):
        lock = self._lock_for(trip_id)
        acquired = lock.acquire(timeout=-1 if timeout is None else timeout)
        if not acquired:
            raise TripBusy(trip_id)
        try:
            yield
        finally:
            lock.release()

    def is_locked(self, trip_id: int) -> bool:
        return self._lock_for(trip_id).locked()


trip_locks = TripLockRegistry()
