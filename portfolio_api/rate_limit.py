"""Per-client request limiting."""

import asyncio
import logging
import time
from collections import deque

from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60


class SlidingWindowRateLimiter:
    """In-process sliding window: at most `limit` hits per key within `window` seconds."""

    def __init__(self, limit: int = 100, window: float = WINDOW_SECONDS, clock=time.monotonic):
        self.limit = limit
        self.window = window
        self.clock = clock
        self._hits: dict[str, deque] = {}
        self._lock = asyncio.Lock()
        self._last_prune = clock()

    async def hit(self, key: str) -> tuple[bool, int]:
        """Record a request. Returns (allowed, retry_after_seconds)."""
        async with self._lock:
            now = self.clock()
            cutoff = now - self.window
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= cutoff:
                hits.popleft()

            if len(hits) >= self.limit:
                retry_after = max(1, int(hits[0] + self.window - now) + 1)
                return False, retry_after

            hits.append(now)
            # idle keys are swept at most once per window
            if now - self._last_prune >= self.window:
                self._prune(cutoff)
                self._last_prune = now
            return True, 0

    def _prune(self, cutoff: float):
        stale = [key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for key in stale:
            del self._hits[key]


class RedisRateLimiter:
    """Fixed window counter shared across replicas.

    The window key is created with SET NX EX before INCR, which keeps the
    expiry attached to the first hit without EXPIRE's NX flag (Redis 7+).
    """

    def __init__(self, client, limit: int = 100, window: int = WINDOW_SECONDS, prefix: str = "ratelimit"):
        self.client = client
        self.limit = limit
        self.window = window
        self.prefix = prefix

    async def hit(self, key: str) -> tuple[bool, int]:
        redis_key = f"{self.prefix}:{key}"
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.set(redis_key, 0, ex=self.window, nx=True)
                pipe.incr(redis_key)
                pipe.ttl(redis_key)
                _, count, ttl = await pipe.execute()
        except (RedisError, OSError) as e:
            # fail open
            logger.warning("[RateLimit] Redis error, allowing request: %s", e)
            return True, 0

        if count > self.limit:
            return False, max(1, ttl)
        return True, 0
