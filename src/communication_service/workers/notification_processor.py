"""Notification processor: claims due queue rows and delivers them per channel."""
from __future__ import annotations

import asyncio
import logging
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timedelta, timezone
from typing import Callable

import httpx
import redis.asyncio as aioredis

from communication_service.api.middleware.correlation_id import bind_correlation_id
from communication_service.application.ports.channels import ChannelSender, DeliveryError
from communication_service.application.uow import UnitOfWork
from communication_service.config import settings
from communication_service.domain.entities.notification import Notification, NotificationQueueItem
from communication_service.domain.value_objects.enums import NotificationChannel
from communication_service.infrastructure.bus.redis_pubsub import RedisPubSubPublisher
from communication_service.infrastructure.cache.redis_cache import RedisCache
from communication_service.infrastructure.channels.registry import build_senders
from communication_service.infrastructure.db.session import open_uow
from communication_service.log import setup_logging

logger = logging.getLogger(__name__)

UoWFactory = Callable[[], AbstractAsyncContextManager[UnitOfWork]]


class NotificationProcessor:
    """Poll loop over the notification queue.

    Rows are claimed with ``FOR UPDATE SKIP LOCKED`` in their own transaction,
    so several processors can share one queue. A claimed row is delivered
    outside any transaction and then settled in a short unit of work. Rows
    stuck in ``processing`` longer than ``claim_timeout`` are claimed again.
    """

    def __init__(
        self,
        uow_factory: UoWFactory,
        senders: dict[str, ChannelSender],
        *,
        batch_size: int = settings.NOTIFICATION_BATCH_SIZE,
        max_attempts: int = settings.NOTIFICATION_MAX_ATTEMPTS,
        retry_delay: int = settings.NOTIFICATION_RETRY_DELAY,
        claim_timeout: int = settings.NOTIFICATION_CLAIM_TIMEOUT,
    ) -> None:
        self._uow_factory = uow_factory
        self._senders = senders
        self._batch_size = batch_size
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay
        self._claim_timeout = claim_timeout

    def next_attempt_at(self, attempt_count: int, now: datetime) -> datetime | None:
        """Linear backoff. ``None`` once the attempt budget is spent."""
        if attempt_count >= self._max_attempts:
            return None
        return now + timedelta(seconds=self._retry_delay * attempt_count)

    async def process_batch(self, now: datetime | None = None) -> int:
        now = now or datetime.now(timezone.utc)
        async with self._uow_factory() as uow:
            items = await uow.notification_queue.claim_due(
                self._batch_size,
                now,
                stale_before=now - timedelta(seconds=self._claim_timeout),
            )
            await uow.commit()
        if not items:
            return 0

        await asyncio.gather(*(self._process_item(item) for item in items))
        logger.info("Processed %d notification queue item(s)", len(items))
        return len(items)

    async def _process_item(self, item: NotificationQueueItem) -> None:
        with bind_correlation_id(f"queue-{item.id.hex[:12]}"):
            try:
                await self._deliver(item)
            except Exception as exc:
                logger.exception("Queue item %s could not be settled", item.id)
                try:
                    await self._settle(item, None, f"settle failed: {exc}")
                except Exception:
                    logger.exception(
                        "Queue item %s left processing, it is reclaimed after %ds",
                        item.id, self._claim_timeout,
                    )

    async def _deliver(self, item: NotificationQueueItem) -> None:
        notification: Notification | None = None
        try:
            async with self._uow_factory() as uow:
                notification = await uow.notifications.get_by_id(item.notification_id)
            if notification is None:
                raise DeliveryError("Notification not found")
            sender = self._senders.get(item.channel)
            if sender is None:
                raise DeliveryError(f"No sender configured for channel {item.channel}")
            await sender.send(notification)
        except Exception as exc:
            if not isinstance(exc, DeliveryError):
                logger.exception("Unexpected error delivering queue item %s", item.id)
            await self._settle(item, None, str(exc) or type(exc).__name__)
        else:
            await self._settle(item, notification, None)

    async def _settle(
        self,
        item: NotificationQueueItem,
        delivered: Notification | None,
        error: str | None,
    ) -> None:
        now = datetime.now(timezone.utc)
        async with self._uow_factory() as uow:
            if delivered is not None:
                await uow.notification_queue.mark_completed(item.id, now)
                await uow.notifications_w.mark_sent(
                    delivered.id,
                    delivered.recipient_id,
                    now,
                    delivered=item.channel == NotificationChannel.IN_APP,
                )
            else:
                await self._record_failure(item, error or "unknown error", now, uow)
            await uow.commit()

    async def _record_failure(
        self, item: NotificationQueueItem, error: str, now: datetime, uow: UnitOfWork
    ) -> None:
        attempts = item.attempt_count + 1
        retry_at = self.next_attempt_at(attempts, now)
        await uow.notification_queue.mark_failed(item.id, error, retry_at)
        if retry_at is not None:
            logger.warning(
                "Delivery of %s via %s failed (attempt %d/%d), retrying at %s: %s",
                item.notification_id, item.channel, attempts, self._max_attempts,
                retry_at.isoformat(), error,
            )
            return

        logger.error(
            "Delivery of %s via %s failed permanently after %d attempts: %s",
            item.notification_id, item.channel, attempts, error,
        )
        notification = await uow.notifications.get_by_id(item.notification_id)
        if notification is not None:
            await uow.notifications_w.mark_failed(
                notification.id, notification.recipient_id, error
            )


async def run_notification_processor() -> None:
    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    cache = RedisCache(
        redis, default_ttl=settings.CACHE_DEFAULT_TTL, enabled=settings.CACHE_ENABLED
    )
    client = httpx.AsyncClient(timeout=settings.GATEWAY_TIMEOUT)
    senders = build_senders(settings, RedisPubSubPublisher(redis), client)
    processor = NotificationProcessor(lambda: open_uow(cache), senders)

    logger.info(
        "Notification processor started (poll=%.1fs, batch=%d, max_attempts=%d)",
        settings.NOTIFICATION_POLL_INTERVAL,
        settings.NOTIFICATION_BATCH_SIZE,
        settings.NOTIFICATION_MAX_ATTEMPTS,
    )

    try:
        while True:
            try:
                await processor.process_batch()
            except Exception:
                logger.exception("Notification processor loop error")
            await asyncio.sleep(settings.NOTIFICATION_POLL_INTERVAL)
    finally:
        await client.aclose()
        await redis.aclose()


def main() -> None:
    setup_logging()
    asyncio.run(run_notification_processor())


if __name__ == "__main__":
    main()
