import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class WaitlistExpiryScheduler:
    """Runs the waitlist expiry sweep on a fixed interval.

    Owned by the process: the web app starts it on startup and stops it on
    shutdown. ``job`` opens its own session and returns the number of
    entries it expired.
    """

    def __init__(self, job: Callable[[], int], interval_seconds: float = 300):
        self.job = job
        self.interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.interval_seconds <= 0:
            logger.info("Waitlist expiry scheduler disabled")
            return
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="waitlist-expiry", daemon=True)
        self._thread.start()
        logger.info("Waitlist expiry scheduler started (every %ss)", self.interval_seconds)

    def stop(self, timeout: Optional[float] = 5):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
            logger.info("Waitlist expiry scheduler stopped")

    def run_once(self) -> int:
        try:
            count = self.job()
        except Exception:
            # Keep the loop alive; the next tick retries
            logger.exception("Waitlist expiry sweep failed")
            return 0
        if count:
            logger.info("Expired %d waitlist entries", count)
        return count

    def _run(self):
        while not self._stop.wait(self.interval_seconds):
            self.run_once()
