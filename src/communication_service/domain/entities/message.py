from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID


@dataclass(frozen=True, slots=True)
class MessageAttachment:
    id: UUID
    message_id: UUID
    url: str
    file_name: str
    file_type: str
    file_size: int
    type: str
    thumbnail_url: str | None = None
    width: int | None = None
    height: int | None = None
    duration: int | None = None


@dataclass(frozen=True, slots=True)
class Message:
    id: UUID
    conversation_id: UUID
    sender_id: str
    type: str
    content: str | None
    created_at: datetime
    reply_to_id: UUID | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    edited_at: datetime | None = None
    deleted_at: datetime | None = None
    deleted_by: str | None = None
    attachments: list[MessageAttachment] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class MessageReaction:
    message_id: UUID
    user_id: str
    emoji: str
    created_at: datetime


@dataclass(frozen=True, slots=True)
class MessageReadReceipt:
    message_id: UUID
    user_id: str
    read_at: datetime
