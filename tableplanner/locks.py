"""Per-table, per-date locks guarding the conflict re-check and insert."""

import threading
from contextlib import contextmanager
from datetime import date
from typing import Dict, Hashable, Iterable, Tuple


class TableLocks:
    """Hands out one lock per (table, date).

    ``hold()`` takes the locks for several tables at once, always in
    ascending table order, so two combined-table bookings cannot deadlock.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Tuple[Hashable, date], threading.Lock] = {}

    def lock_for(self, table_id: Hashable, day: date) -> threading.Lock:
        with self._guard:
            key = (table_id, day)
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    def waitlist_lock(self, day: date) -> threading.Lock:
        """Serializes snapshot-sort-offer on one day's waitlist"""
        return self.lock_for("waitlist", day)

    @contextmanager
    def hold(self, table_ids: Iterable[int], day: date):
        locks = [self.lock_for(table_id, day) for table_id in sorted(set(table_ids))]
        acquired = []
        try:
            for lock in locks:
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    def discard_before(self, day: date) -> int:
        """Drop locks for past dates; returns how many were removed"""
        with self._guard:
            stale = [key for key, lock in self._locks.items() if key[1] < day and not lock.locked()]
            for key in stale:
                del self._locks[key]
            return len(stale)

    def __len__(self):
        return len(self._locks)
