from __future__ import annotations

import dataclasses
from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, and_, case, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from communication_service.application.dto.notification import NotificationFilterDTO
from communication_service.domain.entities.notification import (
    Notification,
    NotificationPreference,
    NotificationQueueItem,
    NotificationTemplate,
)
from communication_service.domain.value_objects.enums import (
    PRIORITY_RANK,
    UNREAD_NOTIFICATION_STATUSES,
    NotificationStatus,
    QueueStatus,
)
from communication_service.infrastructure.db.mappers import notification as mapper
from communication_service.infrastructure.db.models.notification import (
    NotificationModel,
    NotificationPreferenceModel,
    NotificationQueueModel,
    NotificationTemplateModel,
)

_PRIORITY_RANK = case(
    {str(p): rank for p, rank in PRIORITY_RANK.items()},
    value=NotificationQueueModel.priority,
    else_=len(PRIORITY_RANK),
)


def _apply_filters(
    stmt: Select, user_id: str, filters: NotificationFilterDTO
) -> Select:
    stmt = stmt.where(
        NotificationModel.recipient_id == user_id,
        NotificationModel.deleted_at.is_(None),
    )
    if filters.status:
        stmt = stmt.where(NotificationModel.status == filters.status)
    if filters.priority:
        stmt = stmt.where(NotificationModel.priority == filters.priority)
    return stmt


class NotificationReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, notification_id: UUID) -> Notification | None:
        model = await self._session.get(NotificationModel, notification_id)
        if model is None or model.deleted_at is not None:
            return None
        return mapper.model_to_entity(model)

    async def list_for_user(
        self, user_id: str, filters: NotificationFilterDTO
    ) -> list[Notification]:
        stmt = _apply_filters(select(NotificationModel), user_id, filters)
        stmt = (
            stmt.order_by(NotificationModel.created_at.desc())
            .offset(filters.offset)
            .limit(filters.limit)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def count_for_user(self, user_id: str, filters: NotificationFilterDTO) -> int:
        stmt = _apply_filters(select(func.count(NotificationModel.id)), user_id, filters)
        result = await self._session.execute(stmt)
        return int(result.scalar_one())

    async def count_unread(self, user_id: str) -> int:
        stmt = select(func.count(NotificationModel.id)).where(
            NotificationModel.recipient_id == user_id,
            NotificationModel.deleted_at.is_(None),
            NotificationModel.status.in_(UNREAD_NOTIFICATION_STATUSES),
        )
        result = await self._session.execute(stmt)
        return int(result.scalar_one())

    async def list_unread_ids(self, user_id: str) -> list[UUID]:
        stmt = select(NotificationModel.id).where(
            NotificationModel.recipient_id == user_id,
            NotificationModel.deleted_at.is_(None),
            NotificationModel.status.in_(UNREAD_NOTIFICATION_STATUSES),
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_for_stats(
        self,
        *,
        user_id: str | None = None,
        team_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Notification]:
        stmt = select(NotificationModel).where(NotificationModel.deleted_at.is_(None))
        if user_id:
            stmt = stmt.where(NotificationModel.recipient_id == user_id)
        if team_id:
            stmt = stmt.where(NotificationModel.team_id == team_id)
        if start:
            stmt = stmt.where(NotificationModel.created_at >= start)
        if end:
            stmt = stmt.where(NotificationModel.created_at <= end)
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]


class NotificationWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, notification: Notification) -> Notification:
        model = mapper.entity_to_model(notification)
        self._session.add(model)
        await self._session.flush()
        return mapper.model_to_entity(model)

    async def mark_read(self, notification_id: UUID, recipient_id: str, ts: datetime) -> None:
        stmt = (
            update(NotificationModel)
            .where(NotificationModel.id == notification_id)
            .values(status=NotificationStatus.READ, read_at=ts)
        )
        await self._session.execute(stmt)

    async def mark_all_read(
        self,
        recipient_id: str,
        ts: datetime,
        notification_ids: list[UUID] | None = None,
    ) -> int:
        stmt = update(NotificationModel).where(
            NotificationModel.recipient_id == recipient_id,
            NotificationModel.deleted_at.is_(None),
            NotificationModel.status.in_(UNREAD_NOTIFICATION_STATUSES),
        )
        if notification_ids is not None:
            stmt = stmt.where(NotificationModel.id.in_(notification_ids))
        result = await self._session.execute(
            stmt.values(status=NotificationStatus.READ, read_at=ts)
        )
        return int(result.rowcount or 0)

    async def soft_delete(self, notification_id: UUID, recipient_id: str, ts: datetime) -> None:
        stmt = (
            update(NotificationModel)
            .where(NotificationModel.id == notification_id)
            .values(deleted_at=ts)
        )
        await self._session.execute(stmt)

    async def mark_sent(
        self,
        notification_id: UUID,
        recipient_id: str,
        ts: datetime,
        *,
        delivered: bool = False,
    ) -> None:
        # Never move a notification backwards (read > delivered > sent).
        if delivered:
            allowed = [NotificationStatus.PENDING, NotificationStatus.SENT, NotificationStatus.FAILED]
            values = {
                "status": NotificationStatus.DELIVERED,
                "sent_at": func.coalesce(NotificationModel.sent_at, ts),
                "delivered_at": ts,
            }
        else:
            allowed = [NotificationStatus.PENDING, NotificationStatus.FAILED]
            values = {
                "status": NotificationStatus.SENT,
                "sent_at": func.coalesce(NotificationModel.sent_at, ts),
            }
        stmt = (
            update(NotificationModel)
            .where(
                NotificationModel.id == notification_id,
                NotificationModel.status.in_(allowed),
            )
            .values(**values)
        )
        await self._session.execute(stmt)

    async def mark_failed(self, notification_id: UUID, recipient_id: str, error: str) -> None:
        stmt = (
            update(NotificationModel)
            .where(NotificationModel.id == notification_id)
            .values(
                error_message=error,
                status=case(
                    (
                        NotificationModel.status.in_(
                            [NotificationStatus.PENDING, NotificationStatus.SENT]
                        ),
                        NotificationStatus.FAILED.value,
                    ),
                    else_=NotificationModel.status,
                ),
            )
        )
        await self._session.execute(stmt)


class NotificationQueueRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def enqueue(self, items: list[NotificationQueueItem]) -> None:
        self._session.add_all([mapper.queue_to_model(i) for i in items])
        await self._session.flush()

    async def claim_due(
        self,
        batch_size: int,
        now: datetime,
        stale_before: datetime | None = None,
    ) -> list[NotificationQueueItem]:
        due = [
            and_(
                NotificationQueueModel.status == QueueStatus.PENDING,
                or_(
                    NotificationQueueModel.scheduled_for.is_(None),
                    NotificationQueueModel.scheduled_for <= now,
                ),
            ),
            and_(
                NotificationQueueModel.status == QueueStatus.FAILED,
                NotificationQueueModel.next_attempt_at.is_not(None),
                NotificationQueueModel.next_attempt_at <= now,
            ),
        ]
        if stale_before is not None:
            due.append(
                and_(
                    NotificationQueueModel.status == QueueStatus.PROCESSING,
                    NotificationQueueModel.started_at < stale_before,
                )
            )
        stmt = (
            select(NotificationQueueModel)
            .where(or_(*due))
            .order_by(_PRIORITY_RANK, NotificationQueueModel.created_at.asc())
            .limit(batch_size)
            .with_for_update(skip_locked=True)
        )
        result = await self._session.execute(stmt)
        rows = result.scalars().all()
        if not rows:
            return []

        ids = [r.id for r in rows]
        await self._session.execute(
            update(NotificationQueueModel)
            .where(NotificationQueueModel.id.in_(ids))
            .values(status=QueueStatus.PROCESSING, started_at=now)
        )
        await self._session.flush()
        return [
            dataclasses.replace(
                mapper.queue_to_entity(r), status=QueueStatus.PROCESSING, started_at=now
            )
            for r in rows
        ]

    async def mark_completed(self, item_id: UUID, ts: datetime) -> None:
        stmt = (
            update(NotificationQueueModel)
            .where(NotificationQueueModel.id == item_id)
            .values(status=QueueStatus.COMPLETED, completed_at=ts, last_error=None)
        )
        await self._session.execute(stmt)

    async def mark_failed(
        self,
        item_id: UUID,
        error: str,
        next_attempt_at: datetime | None,
    ) -> None:
        stmt = (
            update(NotificationQueueModel)
            .where(NotificationQueueModel.id == item_id)
            .values(
                status=QueueStatus.FAILED,
                attempt_count=NotificationQueueModel.attempt_count + 1,
                last_error=error,
                next_attempt_at=next_attempt_at,
            )
        )
        await self._session.execute(stmt)


class TemplateReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_active(self, type: str, channel: str) -> NotificationTemplate | None:
        stmt = (
            select(NotificationTemplateModel)
            .where(
                NotificationTemplateModel.type == type,
                NotificationTemplateModel.channel == channel,
                NotificationTemplateModel.is_active.is_(True),
            )
            .limit(1)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.template_to_entity(model) if model else None


class PreferenceRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_for_user(self, user_id: str) -> list[NotificationPreference]:
        stmt = select(NotificationPreferenceModel).where(
            NotificationPreferenceModel.user_id == user_id
        )
        result = await self._session.execute(stmt)
        return [mapper.preference_to_entity(m) for m in result.scalars().all()]

    async def upsert(self, preference: NotificationPreference) -> None:
        stmt = pg_insert(NotificationPreferenceModel).values(
            user_id=preference.user_id,
            type=preference.type,
            channel=preference.channel,
            is_enabled=preference.is_enabled,
        )
        stmt = stmt.on_conflict_do_update(
            constraint="uq_notification_preference",
            set_={"is_enabled": stmt.excluded.is_enabled},
        )
        await self._session.execute(stmt)
