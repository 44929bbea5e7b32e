from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

# metadata key holding per-channel renderings: {channel: {"subject", "body"}}
CHANNEL_CONTENT_KEY = "channel_content"


@dataclass(frozen=True, slots=True)
class Notification:
    id: UUID
    recipient_id: str
    type: str
    title: str
    message: str
    priority: str
    status: str
    channels: list[str]
    created_at: datetime
    updated_at: datetime
    team_id: str | None = None
    action_url: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    scheduled_for: datetime | None = None
    sent_at: datetime | None = None
    delivered_at: datetime | None = None
    read_at: datetime | None = None
    error_message: str | None = None
    deleted_at: datetime | None = None

    def content_for(self, channel: str) -> tuple[str, str]:
        """Subject and body for one delivery channel, falling back to the in-app text."""
        rendered = self.metadata.get(CHANNEL_CONTENT_KEY, {}).get(channel) or {}
        return rendered.get("subject") or self.title, rendered.get("body") or self.message


@dataclass(frozen=True, slots=True)
class NotificationQueueItem:
    id: UUID
    notification_id: UUID
    channel: str
    status: str
    priority: str
    attempt_count: int
    created_at: datetime
    scheduled_for: datetime | None = None
    next_attempt_at: datetime | None = None
    last_error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class NotificationTemplate:
    id: UUID
    type: str
    channel: str
    body_template: str
    subject_template: str | None = None
    is_active: bool = True


@dataclass(frozen=True, slots=True)
class NotificationPreference:
    user_id: str
    type: str
    channel: str
    is_enabled: bool
