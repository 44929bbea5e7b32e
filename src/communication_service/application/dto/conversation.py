from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from communication_service.domain.entities.conversation import Conversation
from communication_service.domain.entities.message import Message
from communication_service.domain.entities.participant import Participant
from communication_service.domain.value_objects.enums import ConversationType


@dataclass(frozen=True, slots=True)
class CreateConversationDTO:
    type: ConversationType
    participant_ids: list[str]
    name: str | None = None
    description: str | None = None
    avatar_url: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class UpdateConversationDTO:
    name: str | None = None
    description: str | None = None
    avatar_url: str | None = None
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class ConversationListParams:
    type: ConversationType | None = None
    include_archived: bool = False
    page: int = 1
    limit: int = 20


@dataclass(frozen=True, slots=True)
class ConversationView:
    """Conversation enriched for a specific viewer."""

    conversation: Conversation
    participants: list[Participant]
    last_message: Message | None
    unread_count: int

    @property
    def participant_count(self) -> int:
        return len(self.participants)

    @property
    def last_activity_at(self) -> datetime:
        if self.last_message is not None:
            return self.last_message.created_at
        return self.conversation.last_activity_at


@dataclass(frozen=True, slots=True)
class ConversationPage:
    items: list[ConversationView]
    total: int
    page: int
    total_pages: int
