"""Redis response cache for BillTrack reads.

Services read through the cache (cache-aside) and sweep key patterns after a
mutation commits.  The cache is best-effort: any Redis failure is logged and
treated as a miss, never surfaced to the caller.

Key layout:
    <operation>:<name>=<value>:...   list queries, one segment per filter
    <entity>:<id>                    single-record reads
"""

import json
import logging
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Optional

import redis.asyncio as redis
from billtrack.config import settings

logger = logging.getLogger(__name__)

# Global Redis connection pool
_redis_client: Optional[redis.Redis] = None


async def get_redis() -> redis.Redis:
    """Get or create Redis client connection."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=50,
        )
    return _redis_client


async def close_redis():
    """Close Redis connection (call on app shutdown)."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def cache_key(operation: str, **params) -> str:
    """Build a deterministic key from an operation name and every filter.

        cache_key("billings", page=1, size=10, search=None)
        -> "billings:page=1:search=:size=10"
    """
    parts = [operation]
    for name in sorted(params):
        value = params[name]
        if value is None:
            value = ""
        elif isinstance(value, (date, datetime)):
            value = value.isoformat()
        elif isinstance(value, bool):
            value = str(value).lower()
        parts.append(f"{name}={value}")
    return ":".join(parts)


class ResponseCache:
    """JSON get/set/sweep over an injected redis-compatible client."""

    def __init__(self, client, ttl: int | None = None):
        self.client = client
        self.ttl = ttl or settings.cache_ttl_seconds

    async def get_json(self, key: str) -> Any | None:
        try:
            raw = await self.client.get(key)
        except redis.RedisError as e:
            logger.warning(f"Redis error on GET {key} (treating as miss): {e}")
            return None

        if raw is None:
            logger.debug(f"Cache MISS: {key}")
            return None
        logger.debug(f"Cache HIT: {key}")
        return json.loads(raw)

    async def set_json(self, key: str, value: Any) -> None:
        try:
            await self.client.setex(key, self.ttl, json.dumps(value))
        except redis.RedisError as e:
            logger.warning(f"Redis error on SET {key}: {e}")

    async def remember(self, key: str, loader: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached value for `key`, loading and storing it on a miss."""
        hit = await self.get_json(key)
        if hit is not None:
            return hit
        value = await loader()
        await self.set_json(key, value)
        return value

    async def invalidate(self, *patterns: str) -> int:
        """Delete every key matching any of the glob patterns."""
        removed = 0
        for pattern in patterns:
            try:
                keys = [key async for key in self.client.scan_iter(match=pattern)]
                if keys:
                    await self.client.delete(*keys)
                    removed += len(keys)
                    logger.info(f"Invalidated {len(keys)} cache keys matching {pattern}")
            except redis.RedisError as e:
                logger.warning(f"Failed to invalidate cache for {pattern}: {e}")
        return removed


async def get_cache() -> ResponseCache:
    """FastAPI dependency — the process-wide Redis client wrapped for services."""
    return ResponseCache(await get_redis())
