from __future__ import annotations

import uuid
from collections import Counter
from datetime import datetime, timezone
from string import Template
from typing import Any

from communication_service.application.dto.notification import (
    CreateNotificationDTO,
    NotificationFilterDTO,
    NotificationPage,
    NotificationStats,
    PreferenceUpdateDTO,
)
from communication_service.application.dto.principal import Principal
from communication_service.application.exceptions import (
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from communication_service.application.policies.permissions import assert_staff
from communication_service.application.uow import UnitOfWork
from communication_service.domain.entities.notification import (
    CHANNEL_CONTENT_KEY,
    Notification,
    NotificationPreference,
    NotificationQueueItem,
)
from communication_service.domain.recurrence import RecurrenceRule, generate_occurrences
from communication_service.domain.value_objects.enums import (
    NotificationChannel,
    NotificationPriority,
    NotificationStatus,
    NotificationType,
    QueueStatus,
)

# channels that require an explicit opt-in preference row
OPT_IN_CHANNELS = frozenset({NotificationChannel.SMS})


def render_template(source: str, variables: dict[str, Any]) -> str:
    """Render ``${var}`` placeholders; unknown placeholders are left as-is."""
    return Template(source).safe_substitute({k: str(v) for k, v in variables.items()})


def allowed_channels(
    requested: list[NotificationChannel],
    notification_type: NotificationType,
    priority: NotificationPriority,
    preferences: list[NotificationPreference],
) -> list[NotificationChannel]:
    channels = list(dict.fromkeys(requested))
    if NotificationChannel.IN_APP not in channels:
        channels.insert(0, NotificationChannel.IN_APP)
    if priority == NotificationPriority.URGENT:
        return channels

    explicit = {p.channel: p.is_enabled for p in preferences if p.type == notification_type}
    kept = []
    for channel in channels:
        if channel == NotificationChannel.IN_APP:
            kept.append(channel)
        elif explicit.get(channel, channel not in OPT_IN_CHANNELS):
            kept.append(channel)
    return kept


async def _render_channel(
    dto: CreateNotificationDTO, channel: str, uow: UnitOfWork
) -> tuple[str, str] | None:
    template = await uow.templates.get_active(dto.type, channel)
    if template is None:
        return None
    variables = {"title": dto.title, "message": dto.message, **(dto.template_variables or {})}
    title = (
        render_template(template.subject_template, variables)
        if template.subject_template
        else dto.title
    )
    return title, render_template(template.body_template, variables)


async def _render(
    dto: CreateNotificationDTO, uow: UnitOfWork
) -> tuple[str, str, dict[str, dict[str, str]]]:
    """In-app title and body plus renderings for the other requested channels."""
    if dto.template_variables is None:
        return dto.title, dto.message, {}
    title, body = await _render_channel(dto, NotificationChannel.IN_APP, uow) or (
        dto.title,
        dto.message,
    )
    per_channel: dict[str, dict[str, str]] = {}
    for channel in dict.fromkeys(dto.channels):
        if channel == NotificationChannel.IN_APP:
            continue
        rendered = await _render_channel(dto, channel, uow)
        if rendered is not None:
            per_channel[str(channel)] = {"subject": rendered[0], "body": rendered[1]}
    return title, body, per_channel


async def _create(
    dto: CreateNotificationDTO,
    scheduled_for: datetime | None,
    uow: UnitOfWork,
) -> list[Notification]:
    recipients = list(dict.fromkeys(dto.recipient_ids))
    if not recipients:
        raise ValidationError("At least one recipient is required")
    if not dto.title.strip() or not dto.message.strip():
        raise ValidationError("Title and message are required")

    title, body, per_channel = await _render(dto, uow)
    metadata = dict(dto.metadata)
    if per_channel:
        metadata[CHANNEL_CONTENT_KEY] = per_channel
    now = datetime.now(timezone.utc)
    created: list[Notification] = []
    for recipient_id in recipients:
        preferences = await uow.preferences.list_for_user(recipient_id)
        channels = allowed_channels(dto.channels, dto.type, dto.priority, preferences)
        notification = await uow.notifications_w.create(
            Notification(
                id=uuid.uuid4(),
                recipient_id=recipient_id,
                type=dto.type,
                title=title,
                message=body,
                priority=dto.priority,
                status=NotificationStatus.PENDING,
                channels=[str(c) for c in channels],
                created_at=now,
                updated_at=now,
                team_id=dto.team_id,
                action_url=dto.action_url,
                metadata=dict(metadata),
                scheduled_for=scheduled_for,
            )
        )
        await uow.notification_queue.enqueue(
            [
                NotificationQueueItem(
                    id=uuid.uuid4(),
                    notification_id=notification.id,
                    channel=channel,
                    status=QueueStatus.PENDING,
                    priority=dto.priority,
                    attempt_count=0,
                    created_at=now,
                    scheduled_for=scheduled_for,
                )
                for channel in channels
            ]
        )
        created.append(notification)
    return created


async def create_notification(
    dto: CreateNotificationDTO,
    principal: Principal,
    uow: UnitOfWork,
) -> list[Notification]:
    if dto.recipient_ids != [principal.user_id]:
        assert_staff(principal)
    notifications = await _create(dto, dto.scheduled_for, uow)
    await uow.commit()
    return notifications


async def schedule_recurring(
    dto: CreateNotificationDTO,
    rule: RecurrenceRule,
    principal: Principal,
    uow: UnitOfWork,
) -> list[Notification]:
    """Create one scheduled notification per recipient for every occurrence."""
    assert_staff(principal)
    if dto.scheduled_for is None:
        raise ValidationError("scheduled_for is required for recurring notifications")
    try:
        occurrences = generate_occurrences(dto.scheduled_for, rule)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    created: list[Notification] = []
    for occurrence in occurrences:
        created.extend(await _create(dto, occurrence, uow))
    await uow.commit()
    return created


async def list_notifications(
    filters: NotificationFilterDTO,
    principal: Principal,
    uow: UnitOfWork,
) -> NotificationPage:
    items = await uow.notifications.list_for_user(principal.user_id, filters)
    total = await uow.notifications.count_for_user(principal.user_id, filters)
    unread = await uow.notifications.count_unread(principal.user_id)
    return NotificationPage(notifications=items, total=total, unread_count=unread)


async def get_notification(
    notification_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> Notification:
    notification = await uow.notifications.get_by_id(notification_id)
    if notification is None:
        raise NotFoundError("Notification not found")
    if notification.recipient_id != principal.user_id:
        raise ForbiddenError("You can only access your own notifications")
    return notification


async def mark_read(
    notification_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> None:
    notification = await get_notification(notification_id, principal, uow)
    if notification.status == NotificationStatus.READ:
        return
    await uow.notifications_w.mark_read(
        notification_id, principal.user_id, datetime.now(timezone.utc)
    )
    await uow.commit()


async def mark_all_read(
    principal: Principal,
    uow: UnitOfWork,
    notification_ids: list[uuid.UUID] | None = None,
) -> int:
    changed = await uow.notifications_w.mark_all_read(
        principal.user_id, datetime.now(timezone.utc), notification_ids
    )
    await uow.commit()
    return changed


async def delete_notification(
    notification_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> None:
    await get_notification(notification_id, principal, uow)
    await uow.notifications_w.soft_delete(
        notification_id, principal.user_id, datetime.now(timezone.utc)
    )
    await uow.commit()


async def get_unread_count(principal: Principal, uow: UnitOfWork) -> int:
    return await uow.notifications.count_unread(principal.user_id)


async def get_preferences(principal: Principal, uow: UnitOfWork) -> list[NotificationPreference]:
    """Every type/channel pair, defaults filled in for pairs without a stored row."""
    stored = {
        (p.type, p.channel): p for p in await uow.preferences.list_for_user(principal.user_id)
    }
    return [
        stored.get(
            (t, c),
            NotificationPreference(
                user_id=principal.user_id,
                type=t,
                channel=c,
                is_enabled=c not in OPT_IN_CHANNELS,
            ),
        )
        for t in NotificationType
        for c in NotificationChannel
    ]


async def update_preferences(
    updates: list[PreferenceUpdateDTO],
    principal: Principal,
    uow: UnitOfWork,
) -> list[NotificationPreference]:
    for update in updates:
        if update.channel == NotificationChannel.IN_APP and not update.is_enabled:
            raise ValidationError("In-app notifications cannot be disabled")
        await uow.preferences.upsert(
            NotificationPreference(
                user_id=principal.user_id,
                type=update.type,
                channel=update.channel,
                is_enabled=update.is_enabled,
            )
        )
    await uow.commit()
    return await get_preferences(principal, uow)


async def get_stats(
    principal: Principal,
    uow: UnitOfWork,
    *,
    user_id: str | None = None,
    team_id: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> NotificationStats:
    if not principal.is_staff:
        if user_id not in (None, principal.user_id) or team_id is not None:
            raise ForbiddenError("Staff access required")
        user_id = principal.user_id

    items = await uow.notifications.list_for_stats(
        user_id=user_id, team_id=team_id, start=start, end=end
    )
    total = len(items)
    by_status = Counter(n.status for n in items)
    delivered = by_status[NotificationStatus.DELIVERED] + by_status[NotificationStatus.READ]
    delivery_times = [
        (n.delivered_at - n.created_at).total_seconds()
        for n in items
        if n.delivered_at is not None
    ]
    return NotificationStats(
        total_notifications=total,
        by_status=dict(by_status),
        by_type=dict(Counter(n.type for n in items)),
        by_priority=dict(Counter(n.priority for n in items)),
        delivery_rate=round(delivered / total * 100) if total else 0,
        avg_delivery_time=round(sum(delivery_times) / len(delivery_times)) if delivery_times else 0,
    )
