"""
Admission control for guest submissions.

``RateLimiter`` asks a ``RateLimitBackend`` whether another hit fits in
the rolling window for a key and raises ``RateLimitError`` when it does
not. Rejected requests fail immediately; nothing is queued or retried.

``InMemoryRateLimitBackend`` keeps counters in process memory and is
only correct for a single server instance. Multi-instance deployments
plug in a backend over a shared, atomically updated counter store.
"""

import logging
from abc import ABC, abstractmethod
from collections import deque

from booking_core.errors import RateLimitError
from booking_core.utils import Clock, utc_now

logger = logging.getLogger(__name__)


class RateLimitBackend(ABC):

    @abstractmethod
    async def hit(self, key: str, limit: int, window_sec: float) -> bool:
        """Record one hit for ``key``. Return False if it exceeds ``limit`` in the window."""

    @abstractmethod
    async def reset(self, key: str) -> None:
        """Forget all hits for ``key``."""


class InMemoryRateLimitBackend(RateLimitBackend):
    """Sliding-window log of hit timestamps per key."""

    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}

    async def hit(self, key: str, limit: int, window_sec: float) -> bool:
        now = self._clock().timestamp()
        hits = self._hits.setdefault(key, deque())
        while hits and hits[0] <= now - window_sec:
            hits.popleft()
        if len(hits) >= limit:
            return False
        hits.append(now)
        return True

    async def reset(self, key: str) -> None:
        self._hits.pop(key, None)


class RateLimiter:
    """Raises ``RateLimitError`` when a key goes over its budget."""

    def __init__(self, backend: RateLimitBackend) -> None:
        self._backend = backend

    async def check(
        self,
        key: str,
        limit: int,
        window_sec: float,
        message: str = "Too many requests. Please try again later.",
    ) -> None:
        if not await self._backend.hit(key, limit, window_sec):
            logger.info("Rate limit exceeded for %s (%d per %ss)", key, limit, window_sec)
            raise RateLimitError(message)

    async def reset(self, key: str) -> None:
        await self._backend.reset(key)
