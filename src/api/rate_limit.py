"""
src/api/rate_limit.py
======================
Request Rate Limiter — Audit Agent API

Token bucket shared by every request of the process. Unlike a blocking
limiter, try_acquire() never waits: an empty bucket means the caller
answers 429 straight away.
"""

import logging
import time

logger = logging.getLogger("auditagent.api.rate_limit")


class TokenBucket:
    """
    Token-bucket limiter.

    Parameters
    ----------
    max_per_minute : int
        Sustained request budget.
    burst : int
        Maximum tokens that can accumulate.
    """

    def __init__(self, max_per_minute: int = 30, burst: int = 30, clock=time.monotonic) -> None:
        if max_per_minute <= 0:
            raise ValueError("max_per_minute must be positive")
        self._clock = clock
        self._burst = burst
        self._tokens = float(burst)
        self._interval = 60.0 / max_per_minute
        self._last_refill = clock()

    def _refill(self) -> None:
        now = self._clock()
        new_tokens = (now - self._last_refill) / self._interval
        if new_tokens > 0:
            self._tokens = min(self._tokens + new_tokens, float(self._burst))
            self._last_refill = now

    def try_acquire(self) -> bool:
        """Consume one token if available."""
        self._refill()
        if self._tokens >= 1.0:
            self._tokens -= 1.0
            return True
        logger.warning("Rate limit exceeded — request rejected.")
        return False
