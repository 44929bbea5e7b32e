"""Cross-instance fan-out over one Redis Pub/Sub channel."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError

from communication_service.application.ports.bus import Route
from communication_service.infrastructure.bus.serializer import deserialize_event, serialize_event

logger = logging.getLogger(__name__)

RECONNECT_MIN_DELAY = 1.0
RECONNECT_MAX_DELAY = 30.0


class RedisPubSubPublisher:
    """Implements application.ports.bus.EventPublisher."""

    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis

    async def publish(
        self,
        channel: str,
        event_type: str,
        route: Route,
        data: dict[str, Any],
    ) -> None:
        receivers = await self._redis.publish(channel, serialize_event(event_type, route, data))
        logger.debug("Published %s to %s (%s receivers)", event_type, channel, receivers)


OnEventCallback = Callable[[str, Route, dict[str, Any]], Coroutine[Any, Any, None]]


class RedisPubSubSubscriber:
    """Background task that relays channel events to ``callback``.

    Every API instance runs one; a dropped Redis connection is re-established
    with exponential backoff so WebSocket delivery resumes on its own.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        callback: OnEventCallback,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._callback = callback
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        self._task = asyncio.create_task(self._run(), name="redis-pubsub-subscriber")
        logger.info("Redis Pub/Sub subscriber started on channel=%s", self._channel)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            logger.info("Redis Pub/Sub subscriber stopped")

    async def _run(self) -> None:
        delay = RECONNECT_MIN_DELAY
        while True:
            try:
                await self._listen()
                delay = RECONNECT_MIN_DELAY
            except (RedisConnectionError, OSError):
                logger.warning(
                    "Lost Pub/Sub connection on %s, retrying in %.0fs",
                    self._channel, delay, exc_info=True,
                )
                await asyncio.sleep(delay)
                delay = min(delay * 2, RECONNECT_MAX_DELAY)

    async def _listen(self) -> None:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self._channel)
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                await self.handle(message["data"])
        finally:
            await pubsub.aclose()

    async def handle(self, raw: str | bytes) -> None:
        try:
            event_type, route, data = deserialize_event(raw)
        except (ValueError, KeyError, TypeError):
            logger.warning("Dropping malformed Pub/Sub message: %.200r", raw)
            return
        try:
            await self._callback(event_type, route, data)
        except Exception:
            logger.exception("Error dispatching %s", event_type)
