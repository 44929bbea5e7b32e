from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import TypeAdapter

from communication_service.application.repositories.conversation import (
    ConversationReader,
    ConversationWriter,
)
from communication_service.application.repositories.participant import (
    ParticipantReader,
    ParticipantWriter,
)
from communication_service.domain.entities.conversation import Conversation
from communication_service.domain.entities.participant import Participant
from communication_service.infrastructure.cache import keys
from communication_service.infrastructure.cache.pending import PendingCacheOps
from communication_service.infrastructure.cache.redis_cache import RedisCache

_CONVERSATION = TypeAdapter(Conversation)
_CONVERSATIONS = TypeAdapter(list[Conversation])
_COUNT = TypeAdapter(int)


class CachedConversationRepository:
    """Cache-aside wrapper serving both the reader and writer sides."""

    def __init__(
        self,
        reader: ConversationReader,
        writer: ConversationWriter,
        participants: ParticipantReader,
        cache: RedisCache,
        pending: PendingCacheOps,
        *,
        ttl: int,
        list_ttl: int,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._participants = participants
        self._cache = cache
        self._pending = pending
        self._ttl = ttl
        self._list_ttl = list_ttl

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        key = keys.conversation(conversation_id)
        cached = await self._cache.get(key, _CONVERSATION)
        if cached is not None:
            return cached
        conversation = await self._reader.get_by_id(conversation_id)
        if conversation is not None:
            await self._cache.set(key, conversation, _CONVERSATION, self._ttl)
        return conversation

    async def find_direct_between(self, user_a: str, user_b: str) -> Conversation | None:
        return await self._reader.find_direct_between(user_a, user_b)

    async def list_for_user(
        self,
        user_id: str,
        *,
        type: str | None = None,
        include_archived: bool = False,
        offset: int = 0,
        limit: int = 20,
    ) -> list[Conversation]:
        key = keys.user_conversations(user_id, "list", type, include_archived, offset, limit)
        cached = await self._cache.get(key, _CONVERSATIONS)
        if cached is not None:
            return cached
        items = await self._reader.list_for_user(
            user_id, type=type, include_archived=include_archived, offset=offset, limit=limit
        )
        await self._cache.set(key, items, _CONVERSATIONS, self._list_ttl)
        return items

    async def count_for_user(
        self,
        user_id: str,
        *,
        type: str | None = None,
        include_archived: bool = False,
    ) -> int:
        key = keys.user_conversations(user_id, "count", type, include_archived)
        cached = await self._cache.get(key, _COUNT)
        if cached is not None:
            return cached
        total = await self._reader.count_for_user(
            user_id, type=type, include_archived=include_archived
        )
        await self._cache.set(key, total, _COUNT, self._list_ttl)
        return total

    async def create(self, conversation: Conversation) -> Conversation:
        created = await self._writer.create(conversation)
        self._pending.invalidate(keys.conversation_pattern(created.id))
        return created

    async def update(self, conversation_id: UUID, values: dict[str, Any]) -> None:
        await self._writer.update(conversation_id, values)
        await self._invalidate_conversation(conversation_id)

    async def soft_delete(self, conversation_id: UUID, ts: datetime) -> None:
        await self._writer.soft_delete(conversation_id, ts)
        await self._invalidate_conversation(conversation_id)

    async def touch_last_message_at(self, conversation_id: UUID, ts: datetime) -> None:
        await self._writer.touch_last_message_at(conversation_id, ts)
        await self._invalidate_conversation(conversation_id)

    async def _invalidate_conversation(self, conversation_id: UUID) -> None:
        self._pending.invalidate(keys.conversation_pattern(conversation_id))
        for p in await self._participants.list_participants(conversation_id):
            self._pending.invalidate(keys.user_conversations_pattern(p.user_id))


class CachedParticipantWriter:
    """Membership changes alter list, detail and unread keys of the affected user."""

    def __init__(self, writer: ParticipantWriter, pending: PendingCacheOps) -> None:
        self._writer = writer
        self._pending = pending

    def _invalidate(self, conversation_id: UUID, user_id: str) -> None:
        self._pending.invalidate(
            keys.conversation_pattern(conversation_id),
            keys.user_conversations_pattern(user_id),
            keys.unread(conversation_id, user_id),
        )

    async def add(self, participant: Participant) -> None:
        await self._writer.add(participant)
        self._invalidate(participant.conversation_id, participant.user_id)

    async def add_many(self, participants: list[Participant]) -> None:
        await self._writer.add_many(participants)
        for p in participants:
            self._invalidate(p.conversation_id, p.user_id)

    async def mark_left(self, conversation_id: UUID, user_id: str, ts: datetime) -> None:
        await self._writer.mark_left(conversation_id, user_id, ts)
        self._invalidate(conversation_id, user_id)

    async def update(
        self,
        conversation_id: UUID,
        user_id: str,
        values: dict[str, Any],
    ) -> None:
        await self._writer.update(conversation_id, user_id, values)
        self._invalidate(conversation_id, user_id)
