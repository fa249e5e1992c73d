# sourcing/clients/rate_limiter.py

"""Process-wide minimum-interval throttle for outgoing requests."""

import logging
import threading
import time
from collections.abc import Callable

from sourcing.config.settings import Settings

logger = logging.getLogger("sourcing.ratelimit")


class RateLimiter:
    """Serialise outgoing requests to one per ``min_interval`` seconds.

    Every catalog client shares a single instance, so bursts issued
    by concurrent searches are spaced out at the network boundary no
    matter how many logical requests are in flight.
    """

    def __init__(
        self,
        min_interval: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.min_interval = (
            Settings.MIN_REQUEST_INTERVAL
            if min_interval is None
            else min_interval
        )
        self._clock = clock
        self._sleep = sleep if sleep is not None else time.sleep
        self._last_request: float | None = None
        self._lock = threading.Lock()

    def wait(self) -> float:
        """Block until a new request is allowed, then claim the slot.

        Returns the number of seconds spent waiting.
        """
        with self._lock:
            waited = 0.0
            if self._last_request is not None:
                elapsed = self._clock() - self._last_request
                remaining = self.min_interval - elapsed
                if remaining > 0:
                    logger.debug(
                        "Throttling outgoing request for %.3fs",
                        remaining,
                    )
                    self._sleep(remaining)
                    waited = remaining
            self._last_request = self._clock()
            return waited

    def reset(self) -> None:
        """Forget the last request time."""
        with self._lock:
            self._last_request = None
