"""WebSocket message envelope models."""
from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from communication_service.domain.value_objects.enums import MessageType, PresenceStatus


class WsInbound(BaseModel):
    """Client -> Server."""

    type: str  # conversation:join | message:send | typing:start | ping ...
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Server -> Client."""

    type: str  # message:new | presence:updated | error | pong ...
    data: dict[str, Any] = {}


class ConversationRef(BaseModel):
    conversation_id: UUID


class WsSendMessage(BaseModel):
    conversation_id: UUID
    content: str | None = None
    type: MessageType = MessageType.TEXT
    reply_to_id: UUID | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class WsMarkRead(BaseModel):
    message_ids: list[UUID] = Field(min_length=1)


class WsPresenceUpdate(BaseModel):
    status: PresenceStatus
    status_message: str | None = Field(default=None, max_length=255)
