"""Redis read-through cache for JSON payloads."""

import json
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

LIST_TTL = 300
PAGE_TTL = 600


class ResponseCache:
    """JSON values in Redis under plain keys ('projects', 'about', ...).

    When Redis cannot be reached at startup the cache stays disabled and every
    lookup is a miss.
    """

    def __init__(self, url: str = "redis://localhost:6379/0", client=None):
        self.url = url
        self.client = client
        self.enabled = False

    async def connect(self):
        if self.client is None:
            self.client = redis.from_url(self.url, decode_responses=True)
        try:
            await self.client.ping()
        except (RedisError, OSError) as e:
            logger.warning("[Cache] Redis unavailable, caching disabled: %s", e)
            self.enabled = False
            return
        self.enabled = True
        logger.info("[Cache] connected to Redis")

    async def close(self):
        if self.client is not None:
            await self.client.aclose()
            self.client = None
        self.enabled = False

    async def ping(self) -> bool:
        if not self.enabled:
            return False
        try:
            return bool(await self.client.ping())
        except (RedisError, OSError):
            return False

    async def get(self, key: str):
        """Return (value, found)."""
        if not self.enabled:
            return None, False
        try:
            raw = await self.client.get(key)
        except (RedisError, OSError) as e:
            logger.warning("[Cache] get %s failed: %s", key, e)
            return None, False
        if raw is None:
            return None, False
        try:
            return json.loads(raw), True
        except ValueError:
            logger.warning("[Cache] dropping undecodable entry %s", key)
            return None, False

    async def set(self, key: str, value, ttl: int = LIST_TTL) -> None:
        if not self.enabled:
            return
        try:
            await self.client.set(key, json.dumps(value, default=str), ex=ttl)
        except (RedisError, OSError) as e:
            logger.warning("[Cache] set %s failed: %s", key, e)

    async def invalidate(self, *keys: str) -> None:
        if not self.enabled or not keys:
            return
        try:
            await self.client.delete(*keys)
        except (RedisError, OSError) as e:
            logger.warning("[Cache] invalidate %s failed: %s", ", ".join(keys), e)
