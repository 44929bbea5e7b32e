from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import TypeAdapter

from communication_service.application.dto.notification import NotificationFilterDTO
from communication_service.application.repositories.notification import (
    NotificationReader,
    NotificationWriter,
)
from communication_service.domain.entities.notification import Notification
from communication_service.infrastructure.cache import keys
from communication_service.infrastructure.cache.pending import PendingCacheOps
from communication_service.infrastructure.cache.redis_cache import RedisCache

_NOTIFICATION = TypeAdapter(Notification)
_NOTIFICATIONS = TypeAdapter(list[Notification])
_COUNT = TypeAdapter(int)


class CachedNotificationRepository:
    def __init__(
        self,
        reader: NotificationReader,
        writer: NotificationWriter,
        cache: RedisCache,
        pending: PendingCacheOps,
        *,
        ttl: int,
        list_ttl: int,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._cache = cache
        self._pending = pending
        self._ttl = ttl
        self._list_ttl = list_ttl

    async def get_by_id(self, notification_id: UUID) -> Notification | None:
        key = keys.notification(notification_id)
        cached = await self._cache.get(key, _NOTIFICATION)
        if cached is not None:
            return cached
        notification = await self._reader.get_by_id(notification_id)
        if notification is not None:
            await self._cache.set(key, notification, _NOTIFICATION, self._ttl)
        return notification

    async def list_for_user(
        self, user_id: str, filters: NotificationFilterDTO
    ) -> list[Notification]:
        key = keys.user_notifications(
            user_id, "list", filters.status, filters.priority, filters.offset, filters.limit
        )
        cached = await self._cache.get(key, _NOTIFICATIONS)
        if cached is not None:
            return cached
        items = await self._reader.list_for_user(user_id, filters)
        await self._cache.set(key, items, _NOTIFICATIONS, self._list_ttl)
        return items

    async def count_for_user(self, user_id: str, filters: NotificationFilterDTO) -> int:
        key = keys.user_notifications(user_id, "count", filters.status, filters.priority)
        cached = await self._cache.get(key, _COUNT)
        if cached is not None:
            return cached
        total = await self._reader.count_for_user(user_id, filters)
        await self._cache.set(key, total, _COUNT, self._list_ttl)
        return total

    async def count_unread(self, user_id: str) -> int:
        key = keys.user_notifications(user_id, "unread")
        cached = await self._cache.get(key, _COUNT)
        if cached is not None:
            return cached
        count = await self._reader.count_unread(user_id)
        await self._cache.set(key, count, _COUNT, self._list_ttl)
        return count

    async def list_unread_ids(self, user_id: str) -> list[UUID]:
        return await self._reader.list_unread_ids(user_id)

    async def list_for_stats(
        self,
        *,
        user_id: str | None = None,
        team_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Notification]:
        return await self._reader.list_for_stats(
            user_id=user_id, team_id=team_id, start=start, end=end
        )

    def _invalidate(self, recipient_id: str, *notification_ids: UUID) -> None:
        self._pending.invalidate(
            keys.user_notifications_pattern(recipient_id),
            *(keys.notification(nid) for nid in notification_ids),
        )

    async def create(self, notification: Notification) -> Notification:
        created = await self._writer.create(notification)
        self._invalidate(created.recipient_id, created.id)
        return created

    async def mark_read(self, notification_id: UUID, recipient_id: str, ts: datetime) -> None:
        await self._writer.mark_read(notification_id, recipient_id, ts)
        self._invalidate(recipient_id, notification_id)

    async def mark_all_read(
        self,
        recipient_id: str,
        ts: datetime,
        notification_ids: list[UUID] | None = None,
    ) -> int:
        affected = (
            notification_ids
            if notification_ids is not None
            else await self._reader.list_unread_ids(recipient_id)
        )
        updated = await self._writer.mark_all_read(recipient_id, ts, notification_ids)
        self._invalidate(recipient_id, *affected)
        return updated

    async def soft_delete(self, notification_id: UUID, recipient_id: str, ts: datetime) -> None:
        await self._writer.soft_delete(notification_id, recipient_id, ts)
        self._invalidate(recipient_id, notification_id)

    async def mark_sent(
        self,
        notification_id: UUID,
        recipient_id: str,
        ts: datetime,
        *,
        delivered: bool = False,
    ) -> None:
        await self._writer.mark_sent(notification_id, recipient_id, ts, delivered=delivered)
        self._invalidate(recipient_id, notification_id)

    async def mark_failed(self, notification_id: UUID, recipient_id: str, error: str) -> None:
        await self._writer.mark_failed(notification_id, recipient_id, error)
        self._invalidate(recipient_id, notification_id)
