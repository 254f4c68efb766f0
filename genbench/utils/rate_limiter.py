"""
Rate limiting utilities for provider calls
"""

import asyncio
import time
from collections import deque
from typing import Dict
import logging

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Enforces both a requests-per-minute window and a concurrent request limit
    """

    WINDOW_SECONDS = 60.0

    def __init__(self, max_requests_per_minute: int = 60, max_concurrent_requests: int = 10):
        self.max_requests_per_minute = max_requests_per_minute
        self.max_concurrent_requests = max_concurrent_requests

        self.request_timestamps = deque()
        self.semaphore = asyncio.Semaphore(max_concurrent_requests)
        self._window_lock = asyncio.Lock()

        logger.debug(f"🚦 Rate limiter initialized: {max_requests_per_minute} req/min, "
                     f"{max_concurrent_requests} concurrent")

    def acquire(self) -> 'RateLimitContext':
        """Context manager granting one request slot"""
        return RateLimitContext(self)

    async def _enforce_rate_limit(self):
        async with self._window_lock:
            while True:
                now = time.monotonic()
                while self.request_timestamps and now - self.request_timestamps[0] > self.WINDOW_SECONDS:
                    self.request_timestamps.popleft()

                if len(self.request_timestamps) < self.max_requests_per_minute:
                    self.request_timestamps.append(now)
                    return

                wait_time = self.WINDOW_SECONDS - (now - self.request_timestamps[0])
                logger.warning(f"🚦 Rate limit reached ({len(self.request_timestamps)}/"
                               f"{self.max_requests_per_minute}). Waiting {wait_time:.1f}s...")
                await asyncio.sleep(max(wait_time, 0.01))


class RateLimitContext:
    """
    Async context manager for rate-limited operations
    """

    def __init__(self, rate_limiter: RateLimiter):
        self.rate_limiter = rate_limiter
        self.acquired = False

    async def __aenter__(self):
        await self.rate_limiter.semaphore.acquire()
        self.acquired = True
        try:
            await self.rate_limiter._enforce_rate_limit()
        except BaseException:
            self.rate_limiter.semaphore.release()
            self.acquired = False
            raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.acquired:
            self.rate_limiter.semaphore.release()
            self.acquired = False


class ProviderRateLimits:
    """
    One rate limiter per provider so a throttled provider never stalls the others
    """

    def __init__(self, max_requests_per_minute: int, max_concurrent_requests: int):
        self.max_requests_per_minute = max_requests_per_minute
        self.max_concurrent_requests = max_concurrent_requests
        self.limiters: Dict[str, RateLimiter] = {}

    def for_provider(self, provider: str) -> RateLimiter:
        limiter = self.limiters.get(provider)
        if limiter is None:
            limiter = RateLimiter(self.max_requests_per_minute, self.max_concurrent_requests)
            self.limiters[provider] = limiter
            logger.info("📊 Rate limiter created for %s: %s req/min, %s concurrent",
                        provider, self.max_requests_per_minute, self.max_concurrent_requests)
        return limiter

    def acquire(self, provider: str) -> RateLimitContext:
        return self.for_provider(provider).acquire()
