from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any
from uuid import UUID

from pydantic import BaseModel, Field

from communication_service.application.dto.notification import CreateNotificationDTO
from communication_service.domain.recurrence import RecurrenceRule
from communication_service.domain.value_objects.enums import (
    NotificationChannel,
    NotificationPriority,
    NotificationType,
    RecurrenceFrequency,
)


class CreateNotificationRequest(BaseModel):
    recipient_ids: list[str] = Field(min_length=1)
    type: NotificationType
    title: str = Field(max_length=255)
    message: str
    priority: NotificationPriority = NotificationPriority.NORMAL
    channels: list[NotificationChannel] = Field(
        default_factory=lambda: [NotificationChannel.IN_APP]
    )
    team_id: str | None = None
    action_url: str | None = Field(default=None, max_length=500)
    metadata: dict[str, Any] = Field(default_factory=dict)
    scheduled_for: datetime | None = None
    template_variables: dict[str, Any] | None = None

    def to_dto(self) -> CreateNotificationDTO:
        return CreateNotificationDTO(**self.model_dump())


class RecurrenceRequest(BaseModel):
    frequency: RecurrenceFrequency
    interval: int = Field(default=1, ge=1)
    days_of_week: list[Annotated[int, Field(ge=0, le=6)]] = Field(default_factory=list)
    count: int | None = Field(default=None, ge=1)
    end_date: datetime | None = None

    def to_rule(self) -> RecurrenceRule:
        return RecurrenceRule(
            frequency=self.frequency,
            interval=self.interval,
            days_of_week=tuple(self.days_of_week),
            count=self.count,
            end_date=self.end_date,
        )


class RecurringNotificationRequest(BaseModel):
    notification: CreateNotificationRequest
    recurrence: RecurrenceRequest


class MarkAllReadRequest(BaseModel):
    notification_ids: list[UUID] | None = None


class NotificationResponse(BaseModel):
    id: UUID
    recipient_id: str
    team_id: str | None
    type: str
    title: str
    message: str
    priority: str
    status: str
    channels: list[str]
    action_url: str | None
    metadata: dict[str, Any]
    scheduled_for: datetime | None
    sent_at: datetime | None
    delivered_at: datetime | None
    read_at: datetime | None
    error_message: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    total: int
    unread_count: int


class PreferenceItem(BaseModel):
    type: NotificationType
    channel: NotificationChannel
    is_enabled: bool

    model_config = {"from_attributes": True}


class UpdatePreferencesRequest(BaseModel):
    preferences: list[PreferenceItem] = Field(min_length=1)


class NotificationStatsResponse(BaseModel):
    total_notifications: int
    by_status: dict[str, int]
    by_type: dict[str, int]
    by_priority: dict[str, int]
    delivery_rate: int
    avg_delivery_time: int

    model_config = {"from_attributes": True}


class MarkAllReadResponse(BaseModel):
    updated: int
