"""
Redis-backed cache-aside helper for dashboard queries.

Entries are plain JSON strings written with ``SET key value EX ttl`` and left
to expire on their own; nothing invalidates them when posts or integrations
change. The cache is advisory: if Redis is down or returns garbage the value
is recomputed from source data.

There is no single-flight lock, so concurrent requests on a cold key all
recompute and the last write wins.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from fastapi import Request
from pydantic import TypeAdapter, ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def create_redis(url: str) -> Redis:
    """Build the shared client. Connections are opened lazily on first command."""
    return Redis.from_url(url, decode_responses=True)


def get_redis(request: Request) -> Redis:
    """FastAPI dependency: the client created in the application lifespan."""
    return request.app.state.redis


def summary_key(org_id: str) -> str:
    return f"dashboard:summary:{org_id}"


def traffics_key(org_id: str) -> str:
    return f"dashboard:traffics:{org_id}"


def impressions_key(org_id: str, period: str) -> str:
    return f"dashboard:impressions:{org_id}:{period}"


class DashboardCache:
    def __init__(self, redis: Redis, ttl: int) -> None:
        self._redis = redis
        self.ttl = ttl

    async def get(self, key: str) -> str | None:
        try:
            return await self._redis.get(key)
        except RedisError as exc:
            logger.warning("Cache read failed for %s: %s", key, exc)
            return None

    async def set(self, key: str, value: str) -> None:
        try:
            await self._redis.set(key, value, ex=self.ttl)
        except RedisError as exc:
            logger.warning("Cache write failed for %s: %s", key, exc)

    async def get_or_compute(
        self,
        key: str,
        adapter: TypeAdapter[T],
        compute: Callable[[], Awaitable[T]],
    ) -> T:
        """Return the cached value for ``key`` or compute, store and return it."""
        cached = await self.get(key)
        if cached:
            try:
                value = adapter.validate_json(cached)
                logger.debug("Cache hit: %s", key)
                return value
            except ValidationError:
                logger.warning("Discarding unreadable cache entry %s", key)

        logger.debug("Cache miss: %s", key)
        result = await compute()
        await self.set(key, adapter.dump_json(result).decode())
        return result
