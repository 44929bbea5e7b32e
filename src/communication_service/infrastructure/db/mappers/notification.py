from __future__ import annotations

from communication_service.domain.entities.notification import (
    Notification,
    NotificationPreference,
    NotificationQueueItem,
    NotificationTemplate,
)
from communication_service.infrastructure.db.models.notification import (
    NotificationModel,
    NotificationPreferenceModel,
    NotificationQueueModel,
    NotificationTemplateModel,
)


def model_to_entity(model: NotificationModel) -> Notification:
    return Notification(
        id=model.id,
        recipient_id=model.recipient_id,
        type=model.type,
        title=model.title,
        message=model.message,
        priority=model.priority,
        status=model.status,
        channels=list(model.channels or []),
        created_at=model.created_at,
        updated_at=model.updated_at,
        team_id=model.team_id,
        action_url=model.action_url,
        metadata=dict(model.metadata_ or {}),
        scheduled_for=model.scheduled_for,
        sent_at=model.sent_at,
        delivered_at=model.delivered_at,
        read_at=model.read_at,
        error_message=model.error_message,
        deleted_at=model.deleted_at,
    )


def entity_to_model(entity: Notification) -> NotificationModel:
    return NotificationModel(
        id=entity.id,
        recipient_id=entity.recipient_id,
        team_id=entity.team_id,
        type=entity.type,
        title=entity.title,
        message=entity.message,
        priority=entity.priority,
        status=entity.status,
        channels=list(entity.channels),
        action_url=entity.action_url,
        metadata_=dict(entity.metadata),
        scheduled_for=entity.scheduled_for,
        sent_at=entity.sent_at,
        delivered_at=entity.delivered_at,
        read_at=entity.read_at,
        error_message=entity.error_message,
        created_at=entity.created_at,
        updated_at=entity.updated_at,
        deleted_at=entity.deleted_at,
    )


def queue_to_entity(model: NotificationQueueModel) -> NotificationQueueItem:
    return NotificationQueueItem(
        id=model.id,
        notification_id=model.notification_id,
        channel=model.channel,
        status=model.status,
        priority=model.priority,
        attempt_count=model.attempt_count,
        created_at=model.created_at,
        scheduled_for=model.scheduled_for,
        next_attempt_at=model.next_attempt_at,
        last_error=model.last_error,
        started_at=model.started_at,
        completed_at=model.completed_at,
    )


def queue_to_model(entity: NotificationQueueItem) -> NotificationQueueModel:
    return NotificationQueueModel(
        id=entity.id,
        notification_id=entity.notification_id,
        channel=entity.channel,
        status=entity.status,
        priority=entity.priority,
        attempt_count=entity.attempt_count,
        scheduled_for=entity.scheduled_for,
        next_attempt_at=entity.next_attempt_at,
        created_at=entity.created_at,
    )


def template_to_entity(model: NotificationTemplateModel) -> NotificationTemplate:
    return NotificationTemplate(
        id=model.id,
        type=model.type,
        channel=model.channel,
        body_template=model.body_template,
        subject_template=model.subject_template,
        is_active=model.is_active,
    )


def preference_to_entity(model: NotificationPreferenceModel) -> NotificationPreference:
    return NotificationPreference(
        user_id=model.user_id,
        type=model.type,
        channel=model.channel,
        is_enabled=model.is_enabled,
    )
