import threading
import time
from typing import Callable, Dict, Hashable, Optional, Tuple


class AvailabilityCache:
    """Short-lived cache for read-only availability displays.

    Never consult it when committing a booking: a cached snapshot can be
    stale by the time the caller writes.
    """

    def __init__(self, ttl_seconds: float = 120, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[Hashable, Tuple[float, object]] = {}

    def get(self, key: Hashable) -> Optional[object]:
        with self._lock:
            hit = self._entries.get(key)
            if hit is None:
                return None
            stored_at, value = hit
            if self._clock() - stored_at >= self.ttl_seconds:
                del self._entries[key]
                return None
            return value

    def put(self, key: Hashable, value: object):
        if self.ttl_seconds <= 0:
            return
        with self._lock:
            self._entries[key] = (self._clock(), value)

    def get_or_compute(self, key: Hashable, compute: Callable[[], object]) -> object:
        value = self.get(key)
        if value is None:
            value = compute()
            self.put(key, value)
        return value

    def clear(self):
        with self._lock:
            self._entries.clear()
