# vanguard_sync/rate_limiter.py
"""Token bucket gate shared by every Sheets API call of a run."""

import logging
import threading
import time
from typing import Callable, Optional

from .errors import LimiterCancelled

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Token bucket rate limiter.

    ``wait()`` blocks until a token is available. It never fails because the
    quota is exhausted; it only raises LimiterCancelled when the caller's cancel
    event is set or its deadline would pass before a token frees up.
    """

    def __init__(self, rate: float, burst: int = 1,
                 clock: Callable[[], float] = time.monotonic):
        if rate <= 0:
            raise ValueError("rate must be positive")
        if burst < 1:
            raise ValueError("burst must be at least 1")
        self.rate = rate            # tokens per second
        self.capacity = float(burst)
        self._clock = clock
        self._tokens = float(burst)
        self._last_update = clock()
        self._lock = threading.Lock()

    @classmethod
    def per_minute(cls, requests: int, burst: int = 1) -> "RateLimiter":
        return cls(rate=requests / 60.0, burst=burst)

    def _refill(self, now: float) -> None:
        elapsed = max(0.0, now - self._last_update)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
        self._last_update = now

    def try_acquire(self) -> float:
        """
        Take a token if one is available.

        Returns:
            0.0 if a token was taken, otherwise the seconds until one will be.
        """
        with self._lock:
            self._refill(self._clock())
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return 0.0
            return (1.0 - self._tokens) / self.rate

    def wait(self, cancel: Optional[threading.Event] = None,
             timeout: Optional[float] = None) -> None:
        """Block until a token is taken, the cancel event is set or the timeout passes."""
        deadline = None if timeout is None else self._clock() + timeout
        sleeper = cancel if cancel is not None else threading.Event()

        while True:
            if sleeper.is_set():
                raise LimiterCancelled("rate limiter wait cancelled")

            delay = self.try_acquire()
            if delay <= 0.0:
                return

            if deadline is not None and self._clock() + delay > deadline:
                raise LimiterCancelled(f"rate limiter deadline exceeded (next token in {delay:.2f}s)")

            logger.debug("rate limited, waiting %.2fs", delay)
            if sleeper.wait(delay):
                raise LimiterCancelled("rate limiter wait cancelled")
