"""Typing indicators kept in a per-conversation sorted set scored by timestamp."""
from __future__ import annotations

import logging
import time
from uuid import UUID

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from communication_service.infrastructure.cache import keys

logger = logging.getLogger(__name__)


class TypingTracker:
    def __init__(self, redis: aioredis.Redis, ttl: int = 10) -> None:
        self._redis = redis
        self._ttl = ttl

    async def start(self, conversation_id: UUID, user_id: str, now: float | None = None) -> None:
        key = keys.typing(conversation_id)
        try:
            await self._redis.zadd(key, {user_id: now if now is not None else time.time()})
            await self._redis.expire(key, self._ttl)
        except (RedisError, OSError):
            logger.warning("Failed to record typing for %s", key, exc_info=True)

    async def stop(self, conversation_id: UUID, user_id: str) -> None:
        try:
            await self._redis.zrem(keys.typing(conversation_id), user_id)
        except (RedisError, OSError):
            logger.warning("Failed to clear typing for conversation=%s", conversation_id, exc_info=True)

    async def get_typing_users(
        self, conversation_id: UUID, now: float | None = None
    ) -> list[str]:
        key = keys.typing(conversation_id)
        cutoff = (now if now is not None else time.time()) - self._ttl
        try:
            await self._redis.zremrangebyscore(key, "-inf", cutoff)
            members = await self._redis.zrange(key, 0, -1)
        except (RedisError, OSError):
            logger.warning("Failed to read typing users for %s", key, exc_info=True)
            return []
        return [m.decode() if isinstance(m, bytes) else m for m in members]
