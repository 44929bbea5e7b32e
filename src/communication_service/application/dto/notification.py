from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from communication_service.domain.entities.notification import Notification
from communication_service.domain.value_objects.enums import (
    NotificationChannel,
    NotificationPriority,
    NotificationStatus,
    NotificationType,
)


@dataclass(frozen=True, slots=True)
class CreateNotificationDTO:
    recipient_ids: list[str]
    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.NORMAL
    channels: list[NotificationChannel] = field(
        default_factory=lambda: [NotificationChannel.IN_APP]
    )
    team_id: str | None = None
    action_url: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    scheduled_for: datetime | None = None
    template_variables: dict[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class NotificationFilterDTO:
    status: NotificationStatus | None = None
    priority: NotificationPriority | None = None
    limit: int = 20
    offset: int = 0


@dataclass(frozen=True, slots=True)
class NotificationPage:
    notifications: list[Notification]
    total: int
    unread_count: int


@dataclass(frozen=True, slots=True)
class NotificationStats:
    total_notifications: int
    by_status: dict[str, int]
    by_type: dict[str, int]
    by_priority: dict[str, int]
    delivery_rate: int
    avg_delivery_time: int


@dataclass(frozen=True, slots=True)
class PreferenceUpdateDTO:
    type: NotificationType
    channel: NotificationChannel
    is_enabled: bool
