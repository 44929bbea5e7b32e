from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from communication_service.application.dto.notification import NotificationFilterDTO
from communication_service.domain.entities.notification import (
    Notification,
    NotificationPreference,
    NotificationQueueItem,
    NotificationTemplate,
)


class NotificationReader(Protocol):
    async def get_by_id(self, notification_id: UUID) -> Notification | None:
        """Return the notification unless it was soft-deleted."""
        ...

    async def list_for_user(
        self, user_id: str, filters: NotificationFilterDTO
    ) -> list[Notification]:
        """Newest first."""
        ...

    async def count_for_user(self, user_id: str, filters: NotificationFilterDTO) -> int: ...

    async def count_unread(self, user_id: str) -> int: ...

    async def list_unread_ids(self, user_id: str) -> list[UUID]: ...

    async def list_for_stats(
        self,
        *,
        user_id: str | None = None,
        team_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Notification]: ...


class NotificationWriter(Protocol):
    async def create(self, notification: Notification) -> Notification: ...

    async def mark_read(self, notification_id: UUID, recipient_id: str, ts: datetime) -> None: ...

    async def mark_all_read(
        self,
        recipient_id: str,
        ts: datetime,
        notification_ids: list[UUID] | None = None,
    ) -> int:
        """Mark unread notifications as read, return how many changed."""
        ...

    async def soft_delete(self, notification_id: UUID, recipient_id: str, ts: datetime) -> None: ...

    async def mark_sent(
        self,
        notification_id: UUID,
        recipient_id: str,
        ts: datetime,
        *,
        delivered: bool = False,
    ) -> None: ...

    async def mark_failed(self, notification_id: UUID, recipient_id: str, error: str) -> None: ...


class NotificationQueueRepository(Protocol):
    async def enqueue(self, items: list[NotificationQueueItem]) -> None: ...

    async def claim_due(
        self,
        batch_size: int,
        now: datetime,
        stale_before: datetime | None = None,
    ) -> list[NotificationQueueItem]:
        """Lock due pending/retryable rows, mark them processing and return them.

        Rows left in ``processing`` with ``started_at`` before ``stale_before``
        were abandoned by a crashed processor and are claimed again.
        """
        ...

    async def mark_completed(self, item_id: UUID, ts: datetime) -> None: ...

    async def mark_failed(
        self,
        item_id: UUID,
        error: str,
        next_attempt_at: datetime | None,
    ) -> None:
        """Record a failed attempt. ``next_attempt_at=None`` means no retries left."""
        ...


class TemplateReader(Protocol):
    async def get_active(self, type: str, channel: str) -> NotificationTemplate | None: ...


class PreferenceRepository(Protocol):
    async def list_for_user(self, user_id: str) -> list[NotificationPreference]: ...

    async def upsert(self, preference: NotificationPreference) -> None: ...
