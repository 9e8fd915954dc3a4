"""Redis caching utilities for FretMarine balances.

Balances are cached under ``balance:<kind>:<id>`` with a TTL and dropped
after every commit that touches the scope.  Redis is an optimisation: on
any RedisError reads fall back to the database and writes are skipped.
"""

import json
import logging
from typing import Optional

import redis.asyncio as redis

from fretmarine.config import settings

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


def balance_key(kind: str, entity_id: str) -> str:
    return f"balance:{kind}:{entity_id}"


class BalanceCache:
    """Read-through cache for balance snapshots.

    Wraps a ``redis.asyncio`` client.  Values are the JSON form of
    ``Balance.as_dict()``; the caller rebuilds the dataclass.
    """

    def __init__(self, client: redis.Redis, ttl: int | None = None):
        self.client = client
        self.ttl = settings.balance_cache_ttl if ttl is None else ttl

    @property
    def enabled(self) -> bool:
        return self.ttl > 0

    async def get(self, kind: str, entity_id: str) -> dict | None:
        if not self.enabled:
            return None
        key = balance_key(kind, entity_id)
        try:
            cached_value = await self.client.get(key)
        except redis.RedisError as e:
            logger.warning(f"Redis error (falling back to uncached): {e}")
            return None

        if cached_value:
            logger.debug(f"Cache HIT: {key}")
            return json.loads(cached_value)
        logger.debug(f"Cache MISS: {key}")
        return None

    async def set(self, kind: str, entity_id: str, value: dict) -> None:
        if not self.enabled:
            return
        try:
            await self.client.setex(balance_key(kind, entity_id), self.ttl, json.dumps(value))
        except redis.RedisError as e:
            logger.warning(f"Failed to cache balance: {e}")

    async def invalidate(self, scopes) -> None:
        """Drop the cached balance of every ``(kind, id)`` scope given."""
        keys = [balance_key(kind, entity_id) for kind, entity_id in scopes]
        if not keys:
            return
        try:
            await self.client.delete(*keys)
            logger.debug(f"Invalidated {len(keys)} balance keys")
        except redis.RedisError as e:
            logger.warning(f"Failed to invalidate cache: {e}")
