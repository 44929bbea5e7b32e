from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import TypeAdapter

from communication_service.application.dto.message import MessageSearchParams
from communication_service.application.repositories.message import (
    MessageReader,
    MessageWriter,
)
from communication_service.application.repositories.participant import ParticipantReader
from communication_service.domain.entities.message import Message
from communication_service.infrastructure.cache import keys
from communication_service.infrastructure.cache.pending import PendingCacheOps
from communication_service.infrastructure.cache.redis_cache import RedisCache

_MESSAGE = TypeAdapter(Message)
_MESSAGES = TypeAdapter(list[Message])
_COUNT = TypeAdapter(int)


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class CachedMessageRepository:
    def __init__(
        self,
        reader: MessageReader,
        writer: MessageWriter,
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

    async def get_by_id(
        self, message_id: UUID, *, include_deleted: bool = False
    ) -> Message | None:
        if include_deleted:
            return await self._reader.get_by_id(message_id, include_deleted=True)
        key = keys.message(message_id)
        cached = await self._cache.get(key, _MESSAGE)
        if cached is not None:
            return cached
        message = await self._reader.get_by_id(message_id)
        if message is not None:
            await self._cache.set(key, message, _MESSAGE, self._ttl)
        return message

    async def get_many(self, message_ids: list[UUID]) -> list[Message]:
        return await self._reader.get_many(message_ids)

    async def get_last_message(self, conversation_id: UUID) -> Message | None:
        key = keys.conversation(conversation_id, "last_message")
        # Wrap in a list so an empty conversation is cached too.
        cached = await self._cache.get(key, _MESSAGES)
        if cached is not None:
            return cached[0] if cached else None
        message = await self._reader.get_last_message(conversation_id)
        await self._cache.set(key, [message] if message else [], _MESSAGES, self._list_ttl)
        return message

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
        key = keys.conversation_messages(
            conversation_id, "list", _ts(before), _ts(after), search, offset, limit
        )
        cached = await self._cache.get(key, _MESSAGES)
        if cached is not None:
            return cached
        items = await self._reader.list_messages(
            conversation_id,
            before=before,
            after=after,
            search=search,
            offset=offset,
            limit=limit,
        )
        await self._cache.set(key, items, _MESSAGES, self._list_ttl)
        return items

    async def count_messages(
        self, conversation_id: UUID, *, search: str | None = None
    ) -> int:
        key = keys.conversation_messages(conversation_id, "count", search)
        cached = await self._cache.get(key, _COUNT)
        if cached is not None:
            return cached
        total = await self._reader.count_messages(conversation_id, search=search)
        await self._cache.set(key, total, _COUNT, self._list_ttl)
        return total

    async def count_unread(
        self,
        conversation_id: UUID,
        user_id: str,
        since: datetime | None,
    ) -> int:
        key = keys.unread(conversation_id, user_id)
        cached = await self._cache.get(key, _COUNT)
        if cached is not None:
            return cached
        count = await self._reader.count_unread(conversation_id, user_id, since)
        await self._cache.set(key, count, _COUNT, self._list_ttl)
        return count

    async def search(
        self, conversation_ids: list[UUID], params: MessageSearchParams
    ) -> list[Message]:
        return await self._reader.search(conversation_ids, params)

    async def create(self, message: Message) -> Message:
        created = await self._writer.create(message)
        await self._invalidate_conversation(created.conversation_id)
        return created

    async def update_content(
        self,
        message_id: UUID,
        content: str,
        metadata: dict[str, Any],
        edited_at: datetime,
    ) -> None:
        await self._writer.update_content(message_id, content, metadata, edited_at)
        await self._invalidate_message(message_id)

    async def soft_delete(self, message_id: UUID, deleted_by: str, ts: datetime) -> None:
        await self._writer.soft_delete(message_id, deleted_by, ts)
        await self._invalidate_message(message_id)

    async def _invalidate_message(self, message_id: UUID) -> None:
        self._pending.invalidate(keys.message(message_id))
        message = await self._reader.get_by_id(message_id, include_deleted=True)
        if message is not None:
            await self._invalidate_conversation(message.conversation_id)

    async def _invalidate_conversation(self, conversation_id: UUID) -> None:
        self._pending.invalidate(
            keys.conversation_messages_pattern(conversation_id),
            keys.conversation_pattern(conversation_id),
        )
        for p in await self._participants.list_participants(conversation_id):
            self._pending.invalidate(
                keys.user_conversations_pattern(p.user_id),
                keys.unread(conversation_id, p.user_id),
            )
