from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from communication_service.api.v1.schemas.message import MessageResponse
from communication_service.application.dto.conversation import ConversationView
from communication_service.domain.value_objects.enums import ConversationType


class CreateConversationRequest(BaseModel):
    type: ConversationType
    participant_ids: list[str] = Field(min_length=1)
    name: str | None = Field(default=None, max_length=255)
    description: str | None = None
    avatar_url: str | None = Field(default=None, max_length=500)
    metadata: dict[str, Any] = Field(default_factory=dict)


class UpdateConversationRequest(BaseModel):
    name: str | None = Field(default=None, max_length=255)
    description: str | None = None
    avatar_url: str | None = Field(default=None, max_length=500)
    metadata: dict[str, Any] | None = None


class AddParticipantsRequest(BaseModel):
    user_ids: list[str] = Field(min_length=1)


class MuteRequest(BaseModel):
    until: datetime | None = None


class ParticipantResponse(BaseModel):
    user_id: str
    role: str
    joined_at: datetime
    last_read_at: datetime | None = None
    is_muted: bool = False
    muted_until: datetime | None = None
    archived_at: datetime | None = None

    model_config = {"from_attributes": True}


class ConversationResponse(BaseModel):
    id: UUID
    type: str
    name: str | None
    description: str | None
    avatar_url: str | None
    created_by: str
    metadata: dict[str, Any]
    last_message_at: datetime | None
    created_at: datetime
    updated_at: datetime
    participants: list[ParticipantResponse]
    participant_count: int
    last_message: MessageResponse | None
    unread_count: int

    @classmethod
    def from_view(cls, view: ConversationView) -> ConversationResponse:
        conv = view.conversation
        return cls(
            id=conv.id,
            type=conv.type,
            name=conv.name,
            description=conv.description,
            avatar_url=conv.avatar_url,
            created_by=conv.created_by,
            metadata=conv.metadata,
            last_message_at=conv.last_message_at,
            created_at=conv.created_at,
            updated_at=conv.updated_at,
            participants=[
                ParticipantResponse.model_validate(p, from_attributes=True)
                for p in view.participants
            ],
            participant_count=view.participant_count,
            last_message=(
                MessageResponse.model_validate(view.last_message, from_attributes=True)
                if view.last_message is not None
                else None
            ),
            unread_count=view.unread_count,
        )
