"""Presence sweeper: downgrades idle users to away/offline."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

import redis.asyncio as aioredis

from communication_service.config import settings
from communication_service.infrastructure.cache.redis_cache import RedisCache
from communication_service.infrastructure.db.session import open_uow
from communication_service.log import setup_logging
from communication_service.services import presence_service

logger = logging.getLogger(__name__)


async def run_presence_sweeper() -> None:
    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    cache = RedisCache(
        redis, default_ttl=settings.PRESENCE_CACHE_TTL, enabled=settings.CACHE_ENABLED
    )
    logger.info(
        "Presence sweeper started (interval=%.1fs, away_after=%ds, offline_after=%ds)",
        settings.PRESENCE_SWEEP_INTERVAL,
        settings.PRESENCE_AWAY_AFTER,
        settings.PRESENCE_OFFLINE_AFTER,
    )

    try:
        while True:
            try:
                async with open_uow(cache) as uow:
                    await presence_service.sweep_stale(datetime.now(timezone.utc), uow)
            except Exception:
                logger.exception("Presence sweeper loop error")
            await asyncio.sleep(settings.PRESENCE_SWEEP_INTERVAL)
    finally:
        await redis.aclose()


def main() -> None:
    setup_logging()
    asyncio.run(run_presence_sweeper())


if __name__ == "__main__":
    main()
