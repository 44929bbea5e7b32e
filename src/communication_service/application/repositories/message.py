from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from communication_service.application.dto.message import MessageSearchParams
from communication_service.domain.entities.message import (
    Message,
    MessageReaction,
    MessageReadReceipt,
)


class MessageReader(Protocol):
    async def get_by_id(
        self, message_id: UUID, *, include_deleted: bool = False
    ) -> Message | None: ...

    async def get_many(self, message_ids: list[UUID]) -> list[Message]:
        """Non-deleted messages among the given ids."""
        ...

    async def get_last_message(self, conversation_id: UUID) -> Message | None: ...

    async def list_messages(
        self,
        conversation_id: UUID,
        *,
        before: datetime | None = None,
        after: datetime | None = None,
        search: str | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> list[Message]:
        """Non-deleted messages, newest first, or oldest first when ``after`` is set."""
        ...

    async def count_messages(
        self, conversation_id: UUID, *, search: str | None = None
    ) -> int: ...

    async def count_unread(
        self,
        conversation_id: UUID,
        user_id: str,
        since: datetime | None,
    ) -> int:
        """Messages from other senders created after ``since``."""
        ...

    async def search(
        self, conversation_ids: list[UUID], params: MessageSearchParams
    ) -> list[Message]: ...


class MessageWriter(Protocol):
    async def create(self, message: Message) -> Message:
        """Insert message with its attachments."""
        ...

    async def update_content(
        self,
        message_id: UUID,
        content: str,
        metadata: dict[str, Any],
        edited_at: datetime,
    ) -> None: ...

    async def soft_delete(self, message_id: UUID, deleted_by: str, ts: datetime) -> None: ...


class ReactionRepository(Protocol):
    async def list_for_user(self, message_id: UUID, user_id: str) -> list[MessageReaction]: ...

    async def add(self, reaction: MessageReaction) -> None: ...

    async def remove(self, message_id: UUID, user_id: str, emoji: str) -> None: ...

    async def counts_for_messages(
        self, message_ids: list[UUID]
    ) -> dict[UUID, dict[str, int]]: ...


class ReadReceiptRepository(Protocol):
    async def read_message_ids(self, user_id: str, message_ids: list[UUID]) -> set[UUID]: ...

    async def add_many(self, receipts: list[MessageReadReceipt]) -> None:
        """Insert receipts, ignoring ones that already exist."""
        ...
