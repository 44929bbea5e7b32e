from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from communication_service.domain.entities.conversation import Conversation


class ConversationReader(Protocol):
    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        """Return the conversation unless it does not exist or was soft-deleted."""
        ...

    async def find_direct_between(self, user_a: str, user_b: str) -> Conversation | None: ...

    async def list_for_user(
        self,
        user_id: str,
        *,
        type: str | None = None,
        include_archived: bool = False,
        offset: int = 0,
        limit: int = 20,
    ) -> list[Conversation]:
        """Conversations where the user is an active participant, most recent activity first."""
        ...

    async def count_for_user(
        self,
        user_id: str,
        *,
        type: str | None = None,
        include_archived: bool = False,
    ) -> int: ...


class ConversationWriter(Protocol):
    async def create(self, conversation: Conversation) -> Conversation: ...

    async def update(self, conversation_id: UUID, values: dict[str, Any]) -> None: ...

    async def soft_delete(self, conversation_id: UUID, ts: datetime) -> None: ...

    async def touch_last_message_at(self, conversation_id: UUID, ts: datetime) -> None: ...
