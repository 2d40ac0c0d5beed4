"""
Rate Limiting

Fixed-window request counting per client with an in-process counter
store by default and Redis when counts must be shared across workers.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol, Tuple

import redis.asyncio as redis
from fastapi import Request

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    """Rate limit check result"""
    allowed: bool
    limit: int
    remaining: int
    reset_time: int  # epoch seconds when the current window ends
    retry_after: int
    total_hits: int
    key: str

    def headers(self) -> Dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_time),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after)
        return headers


class WindowCounterStore(Protocol):
    async def increment(self, key: str, ttl: int) -> int:
        """Increment ``key`` and return the new count; the key expires after ``ttl`` seconds."""


class InMemoryWindowStore:
    """Process-local counters. Expired windows are pruned on access."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._counters: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    async def increment(self, key: str, ttl: int) -> int:
        now = self._clock()
        with self._lock:
            self._prune(now)
            count, expires_at = self._counters.get(key, (0, now + ttl))
            count += 1
            self._counters[key] = (count, expires_at)
            return count

    def _prune(self, now: float) -> None:
        expired = [key for key, (_, expires_at) in self._counters.items() if expires_at <= now]
        for key in expired:
            del self._counters[key]

    def __len__(self) -> int:
        return len(self._counters)


class RedisWindowStore:
    """Counters shared through Redis INCR/EXPIRE."""

    def __init__(self, redis_client: redis.Redis):
        self.redis = redis_client

    @classmethod
    def from_url(cls, url: str) -> "RedisWindowStore":
        return cls(redis.from_url(url, decode_responses=True))

    async def increment(self, key: str, ttl: int) -> int:
        current_count = await self.redis.incr(key)
        if current_count == 1:
            # First request in window, set expiration
            await self.redis.expire(key, ttl)
        return int(current_count)

    async def close(self) -> None:
        await self.redis.aclose()


class FixedWindowRateLimiter:
    """Fixed window rate limiting algorithm"""

    def __init__(
        self,
        store: WindowCounterStore,
        limit: int,
        period: int,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.limit = limit
        self.period = period
        self._clock = clock

    async def check(self, identifier: str) -> RateLimitResult:
        """Count one request for ``identifier`` against its current window."""
        now = self._clock()
        window = int(now // self.period)
        window_key = f"rate_limit:fixed:{identifier}:{window}"
        next_window_start = (window + 1) * self.period

        try:
            current_count = await self.store.increment(window_key, self.period)
        except Exception as e:
            logger.error(f"Fixed window rate limit check failed: {str(e)}")
            # Fail open on errors
            return RateLimitResult(
                allowed=True,
                limit=self.limit,
                remaining=self.limit,
                reset_time=next_window_start,
                retry_after=0,
                total_hits=0,
                key=identifier,
            )

        allowed = current_count <= self.limit
        return RateLimitResult(
            allowed=allowed,
            limit=self.limit,
            remaining=max(self.limit - current_count, 0),
            reset_time=next_window_start,
            retry_after=0 if allowed else max(int(next_window_start - now), 1),
            total_hits=current_count,
            key=identifier,
        )


def get_client_ip(request: Request) -> str:
    """
    Get client IP address, considering proxy headers
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else "unknown"


def create_rate_limiter(limit: int, period: int, redis_url: Optional[str] = None) -> FixedWindowRateLimiter:
    store: WindowCounterStore
    if redis_url:
        store = RedisWindowStore.from_url(redis_url)
        logger.info("Rate limiter using Redis counter store")
    else:
        store = InMemoryWindowStore()
        logger.info("Rate limiter using in-memory counter store")
    return FixedWindowRateLimiter(store, limit=limit, period=period)
