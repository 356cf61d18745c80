"""
In-process fixed-window rate limiter.

Guards outbound calls (heartbeat, validation) so that rapid page loads
cannot hammer the backend. Buckets are keyed by operation name.
"""

from dataclasses import dataclass
from typing import Callable, Dict

from gatekeeper.utils.time import now_ms


@dataclass
class RateBucket:
    count: int
    reset_at: float


class RateLimiter:
    """
    Fixed-window counter per key.

    allow(key, limit, window_ms) admits at most ``limit`` calls per window;
    the window starts at the first call after the previous one expired.
    """

    def __init__(self, clock: Callable[[], float] = now_ms) -> None:
        self._clock = clock
        self._buckets: Dict[str, RateBucket] = {}

    def allow(self, key: str, limit: int, window_ms: float) -> bool:
        now = self._clock()
        bucket = self._buckets.get(key)

        if bucket is None or now >= bucket.reset_at:
            bucket = RateBucket(count=0, reset_at=now + window_ms)
            self._buckets[key] = bucket

        if bucket.count >= limit:
            return False

        bucket.count += 1
        return True

    def reset(self) -> None:
        self._buckets.clear()
