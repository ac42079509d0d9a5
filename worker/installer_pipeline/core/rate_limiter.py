"""Minimum-interval rate limiting per external service."""

import logging
import threading
import time
from functools import lru_cache
from typing import Callable, Dict, Mapping, Optional

from installer_pipeline.core.config import get_settings

logger = logging.getLogger(__name__)


class RateLimiter:
    """Space out calls to each external service by a fixed minimum interval.

    One instance is shared by every client in a process, so concurrent runs
    started by the HTTP server draw from the same budget. The lock is held
    across the wait so two threads can never claim the same slot.
    """

    def __init__(
        self,
        intervals: Mapping[str, float],
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.intervals: Dict[str, float] = dict(intervals)
        self._clock = clock
        self._sleep = sleep
        self._last_call: Dict[str, float] = {}
        self._lock = threading.Lock()

    def acquire(self, service_key: str) -> None:
        """Block until the interval for ``service_key`` has elapsed, then claim it."""
        interval = self.intervals.get(service_key)
        if not interval:
            return

        with self._lock:
            last = self._last_call.get(service_key)
            if last is not None:
                wait = interval - (self._clock() - last)
                if wait > 0:
                    logger.debug("Rate limited on %s, waiting %.2fs", service_key, wait)
                    self._sleep(wait)

            self._last_call[service_key] = self._clock()

    def last_call(self, service_key: str) -> Optional[float]:
        return self._last_call.get(service_key)


@lru_cache(maxsize=1)
def get_rate_limiter() -> RateLimiter:
    """Process-wide limiter built from the configured intervals."""
    return RateLimiter(get_settings().rate_limits())
