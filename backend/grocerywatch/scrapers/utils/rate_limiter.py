"""Token bucket rate limiter shared by every outbound scraper request."""

import asyncio
import time
from typing import Optional

import structlog

from grocerywatch.core.exceptions import RateLimitTimeout

logger = structlog.get_logger(__name__)


class RateLimiter:
    """Token bucket: ``limit_for_period`` permits every ``refresh_period`` seconds.

    The bucket starts full and refills continuously. Each request consumes
    one permit; callers wait for a refill, but never longer than the
    acquisition timeout. One instance is created at the application root
    and shared by all stores, so it bounds the aggregate request rate even
    when many scrapes run at once.
    """

    def __init__(
        self,
        limit_for_period: int = 1,
        refresh_period: float = 1.0,
        timeout: float = 5.0,
    ):
        """Initialize rate limiter.

        Args:
            limit_for_period: Permits available per refresh period (burst capacity)
            refresh_period: Period length in seconds
            timeout: Default maximum seconds to wait for a permit
        """
        if limit_for_period < 1:
            raise ValueError("limit_for_period must be at least 1")
        if refresh_period <= 0:
            raise ValueError("refresh_period must be positive")

        self.capacity = float(limit_for_period)
        self.rate = limit_for_period / refresh_period  # permits per second
        self.timeout = timeout
        self.tokens = self.capacity
        self.last_refill = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        """Refill permits based on elapsed time since last refill."""
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.tokens = min(self.capacity, self.tokens + elapsed * self.rate)
        self.last_refill = now

    async def acquire(self, timeout: Optional[float] = None) -> None:
        """Acquire one permit, waiting if necessary.

        Args:
            timeout: Maximum seconds to wait; defaults to the limiter's timeout

        Raises:
            RateLimitTimeout: If no permit becomes available within the timeout
        """
        timeout = self.timeout if timeout is None else timeout
        deadline = time.monotonic() + timeout

        # Waiting in line for the lock counts against the timeout too
        if not self._lock.locked():
            await self._lock.acquire()
        else:
            try:
                await asyncio.wait_for(self._lock.acquire(), timeout=max(0.0, timeout))
            except asyncio.TimeoutError:
                logger.warning("rate_limit_timeout", timeout=timeout, stage="queue")
                raise RateLimitTimeout(timeout) from None

        try:
            while True:
                self._refill()
                if self.tokens >= 1.0:
                    self.tokens -= 1.0
                    return
                wait_time = (1.0 - self.tokens) / self.rate
                if time.monotonic() + wait_time > deadline:
                    logger.warning("rate_limit_timeout", timeout=timeout, stage="refill")
                    raise RateLimitTimeout(timeout)
                await asyncio.sleep(wait_time)
        finally:
            self._lock.release()

    @property
    def available_permits(self) -> int:
        """Whole permits available right now (refreshes the bucket)."""
        self._refill()
        return int(self.tokens)

    @property
    def requests_per_minute(self) -> float:
        return self.rate * 60.0
