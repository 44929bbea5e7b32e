from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from communication_service.application.dto.message import AttachmentDTO, SendMessageDTO
from communication_service.domain.value_objects.enums import MessageType


class AttachmentRequest(BaseModel):
    url: str = Field(max_length=500)
    file_name: str = Field(max_length=255)
    file_type: str = Field(max_length=100)
    file_size: int = Field(ge=0)
    thumbnail_url: str | None = None
    width: int | None = None
    height: int | None = None
    duration: int | None = None


class SendMessageRequest(BaseModel):
    content: str | None = None
    type: MessageType = MessageType.TEXT
    reply_to_id: UUID | None = None
    attachments: list[AttachmentRequest] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    mentions: list[str] = Field(default_factory=list)

    def to_dto(self, conversation_id: UUID) -> SendMessageDTO:
        return SendMessageDTO(
            conversation_id=conversation_id,
            content=self.content,
            type=self.type,
            reply_to_id=self.reply_to_id,
            attachments=[AttachmentDTO(**a.model_dump()) for a in self.attachments],
            metadata=self.metadata,
            mentions=self.mentions,
        )


class EditMessageRequest(BaseModel):
    content: str


class ReactionRequest(BaseModel):
    emoji: str = Field(min_length=1, max_length=32)


class MarkReadRequest(BaseModel):
    message_ids: list[UUID] = Field(min_length=1)


class AttachmentResponse(BaseModel):
    id: UUID
    url: str
    file_name: str
    file_type: str
    file_size: int
    type: str
    thumbnail_url: str | None = None
    width: int | None = None
    height: int | None = None
    duration: int | None = None

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    id: UUID
    conversation_id: UUID
    sender_id: str
    type: str
    content: str | None
    reply_to_id: UUID | None
    metadata: dict[str, Any]
    created_at: datetime
    edited_at: datetime | None = None
    attachments: list[AttachmentResponse] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class MessageItemResponse(MessageResponse):
    is_read: bool
    reaction_counts: dict[str, int]


class ReactionResponse(BaseModel):
    message_id: UUID
    user_id: str
    emoji: str
    created_at: datetime

    model_config = {"from_attributes": True}


class MarkReadResponse(BaseModel):
    marked: int
