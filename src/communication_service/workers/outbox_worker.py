"""Outbox worker: polls pending outbox records, publishes via Redis Pub/Sub."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

import redis.asyncio as aioredis

from communication_service.api.middleware.correlation_id import bind_correlation_id
from communication_service.application.ports.bus import EventPublisher
from communication_service.application.uow import UnitOfWork
from communication_service.config import settings
from communication_service.infrastructure.bus.redis_pubsub import RedisPubSubPublisher
from communication_service.infrastructure.db.session import open_uow
from communication_service.log import setup_logging

logger = logging.getLogger(__name__)

BASE_DELAY_SECONDS = 5
MAX_DELAY_SECONDS = 300


def calc_backoff(attempts: int, now: datetime | None = None) -> datetime:
    delay = min(BASE_DELAY_SECONDS * (2 ** attempts), MAX_DELAY_SECONDS)
    return (now or datetime.now(timezone.utc)) + timedelta(seconds=delay)


async def run_outbox_worker() -> None:
    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    publisher = RedisPubSubPublisher(redis)

    logger.info(
        "Outbox worker started (poll=%.1fs, batch=%d, max_attempts=%d)",
        settings.OUTBOX_POLL_INTERVAL,
        settings.OUTBOX_BATCH_SIZE,
        settings.OUTBOX_MAX_ATTEMPTS,
    )

    try:
        while True:
            try:
                with bind_correlation_id():
                    async with open_uow() as uow:
                        await process_batch(publisher, uow)
            except Exception:
                logger.exception("Outbox worker loop error")
            await asyncio.sleep(settings.OUTBOX_POLL_INTERVAL)
    finally:
        await redis.aclose()


async def process_batch(publisher: EventPublisher, uow: UnitOfWork) -> int:
    """Publish one batch of pending records. Returns how many were published."""
    batch = await uow.outbox.fetch_pending(settings.OUTBOX_BATCH_SIZE)
    if not batch:
        return 0

    sent_ids: list[int] = []
    for record in batch:
        try:
            await publisher.publish(
                settings.REDIS_PUBSUB_CHANNEL,
                record.event_type,
                record.payload.get("route") or {},
                record.payload.get("data") or {},
            )
            sent_ids.append(record.id)
        except Exception as exc:
            attempts = record.attempts + 1
            if attempts >= settings.OUTBOX_MAX_ATTEMPTS:
                logger.error(
                    "Outbox record %d failed %d times, giving up", record.id, attempts
                )
                await uow.outbox.mark_failed(record.id, str(exc), None)
            else:
                logger.exception("Failed to publish outbox record %d", record.id)
                await uow.outbox.mark_failed(record.id, str(exc), calc_backoff(record.attempts))

    if sent_ids:
        await uow.outbox.mark_sent(sent_ids)

    await uow.commit()
    if sent_ids:
        logger.info("Published %d outbox records", len(sent_ids))
    return len(sent_ids)


def main() -> None:
    setup_logging()
    asyncio.run(run_outbox_worker())


if __name__ == "__main__":
    main()
