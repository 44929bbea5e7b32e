"""JSON cache on top of Redis. Failures are logged and treated as misses."""
from __future__ import annotations

import logging
from typing import Any, TypeVar

import redis.asyncio as aioredis
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SCAN_COUNT = 500


class RedisCache:
    def __init__(
        self,
        redis: aioredis.Redis,
        *,
        default_ttl: int = 300,
        enabled: bool = True,
    ) -> None:
        self._redis = redis
        self._default_ttl = default_ttl
        self.enabled = enabled

    async def get(self, key: str, adapter: TypeAdapter[T]) -> T | None:
        if not self.enabled:
            return None
        try:
            raw = await self._redis.get(key)
        except (RedisError, OSError):
            logger.warning("Cache get failed for key=%s", key, exc_info=True)
            return None
        if raw is None:
            return None
        try:
            return adapter.validate_json(raw)
        except PydanticValidationError:
            logger.warning("Dropping undecodable cache entry key=%s", key)
            await self.delete(key)
            return None

    async def get_many(self, keys: list[str], adapter: TypeAdapter[T]) -> dict[str, T]:
        if not self.enabled or not keys:
            return {}
        try:
            values = await self._redis.mget(keys)
        except (RedisError, OSError):
            logger.warning("Cache mget failed for %d keys", len(keys), exc_info=True)
            return {}
        found: dict[str, T] = {}
        for key, raw in zip(keys, values):
            if raw is None:
                continue
            try:
                found[key] = adapter.validate_json(raw)
            except PydanticValidationError:
                logger.warning("Skipping undecodable cache entry key=%s", key)
        return found

    async def set(
        self,
        key: str,
        value: Any,
        adapter: TypeAdapter[Any],
        ttl: int | None = None,
    ) -> None:
        if not self.enabled:
            return
        try:
            await self._redis.set(key, adapter.dump_json(value), ex=ttl or self._default_ttl)
        except (RedisError, OSError):
            logger.warning("Cache set failed for key=%s", key, exc_info=True)

    async def delete(self, *keys: str) -> None:
        if not self.enabled or not keys:
            return
        try:
            await self._redis.delete(*keys)
        except (RedisError, OSError):
            logger.warning("Cache delete failed for keys=%s", keys, exc_info=True)

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern, walking the keyspace with SCAN."""
        if not self.enabled:
            return 0
        deleted = 0
        batch: list[str] = []
        try:
            async for key in self._redis.scan_iter(match=pattern, count=_SCAN_COUNT):
                batch.append(key)
                if len(batch) >= _SCAN_COUNT:
                    deleted += await self._redis.delete(*batch)
                    batch.clear()
            if batch:
                deleted += await self._redis.delete(*batch)
        except (RedisError, OSError):
            logger.warning("Cache pattern delete failed for pattern=%s", pattern, exc_info=True)
        return deleted
