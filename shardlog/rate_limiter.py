"""
Minimum-interval rate limiter for cursor acquisition.

Kinesis allows 5 GetShardIterator calls per second per shard. The store
stays under that by spacing acquisitions at least 250 ms apart. A call
that comes too early is declined, not delayed.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

DEFAULT_MIN_INTERVAL_SECONDS = 0.25


class MinIntervalRateLimiter:
    """Allows at most one acquisition per `min_interval` seconds.

    Args:
        min_interval: Minimum seconds between two allowed calls
        clock: Monotonic clock returning seconds
    """

    def __init__(
        self,
        min_interval: float = DEFAULT_MIN_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if min_interval < 0:
            raise ValueError(f"min_interval must be non-negative: {min_interval}")
        self.min_interval = min_interval
        self._clock = clock
        self._last_acquired: Optional[float] = None

    @property
    def last_acquired(self) -> Optional[float]:
        return self._last_acquired

    def try_acquire(self) -> bool:
        """Claim a slot if the interval has elapsed since the last one.

        Returns:
            True if the caller may proceed (the call time is recorded),
            False if declined (nothing is recorded)
        """
        now = self._clock()
        if self._last_acquired is not None and now - self._last_acquired < self.min_interval:
            return False
        self._last_acquired = now
        return True
