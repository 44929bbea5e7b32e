from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from communication_service.domain.entities.message import Message
from communication_service.domain.value_objects.enums import MessageType


@dataclass(frozen=True, slots=True)
class AttachmentDTO:
    url: str
    file_name: str
    file_type: str
    file_size: int
    thumbnail_url: str | None = None
    width: int | None = None
    height: int | None = None
    duration: int | None = None


@dataclass(frozen=True, slots=True)
class SendMessageDTO:
    conversation_id: UUID
    content: str | None = None
    type: MessageType = MessageType.TEXT
    reply_to_id: UUID | None = None
    attachments: list[AttachmentDTO] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    mentions: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class MessageListParams:
    before_id: UUID | None = None
    after_id: UUID | None = None
    search: str | None = None
    page: int = 1
    limit: int = 50


@dataclass(frozen=True, slots=True)
class MessageSearchParams:
    query: str
    conversation_id: UUID | None = None
    type: MessageType | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None
    limit: int = 50


@dataclass(frozen=True, slots=True)
class MessageView:
    message: Message
    is_read: bool
    reaction_counts: dict[str, int]


@dataclass(frozen=True, slots=True)
class MessagePage:
    items: list[MessageView]
    total: int
    page: int
    total_pages: int
