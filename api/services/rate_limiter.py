"""
Cooperative rate limiting for outbound search calls.

One RateLimiter is shared by everything that talks to the mail and calendar
APIs during a run; it blocks until the configured spacing since the
previous call has passed.
"""
import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Minimum-spacing limiter (a blocking delay, not a queue).

    wait_if_needed() is the only method that mutates state.
    """

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the limiter.

        Args:
            min_interval: Minimum seconds between two calls
            clock: Monotonic time source (injectable for tests)
            sleep: Sleep function (injectable for tests)
        """
        self.min_interval = max(0.0, min_interval)
        self._clock = clock
        self._sleep = sleep
        self._last_call_time: float | None = None
        self._lock = threading.Lock()

    def wait_if_needed(self) -> float:
        """
        Block until min_interval has passed since the previous call.

        Returns:
            Seconds slept (0.0 if no wait was needed)
        """
        with self._lock:
            waited = 0.0
            if self._last_call_time is not None:
                elapsed = self._clock() - self._last_call_time
                if elapsed < self.min_interval:
                    waited = self.min_interval - elapsed
                    logger.debug(f"Rate limit: sleeping {waited:.2f}s")
                    self._sleep(waited)
            self._last_call_time = self._clock()
            return waited
