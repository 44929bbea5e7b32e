from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from communication_service.application.dto.message import MessageSearchParams
from communication_service.domain.entities.message import (
    Message,
    MessageReaction,
    MessageReadReceipt,
)
from communication_service.infrastructure.db.mappers import message as mapper
from communication_service.infrastructure.db.models.message import (
    MessageModel,
    MessageReactionModel,
    MessageReadReceiptModel,
)

SEARCH_RESULT_LIMIT = 50


def _contains(column: Any, needle: str) -> Any:
    escaped = needle.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return column.ilike(f"%{escaped}%", escape="\\")


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(
        self, message_id: UUID, *, include_deleted: bool = False
    ) -> Message | None:
        model = await self._session.get(MessageModel, message_id)
        if model is None or (model.deleted_at is not None and not include_deleted):
            return None
        return mapper.model_to_entity(model)

    async def get_many(self, message_ids: list[UUID]) -> list[Message]:
        if not message_ids:
            return []
        stmt = select(MessageModel).where(
            MessageModel.id.in_(message_ids),
            MessageModel.deleted_at.is_(None),
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def get_last_message(self, conversation_id: UUID) -> Message | None:
        stmt = (
            select(MessageModel)
            .where(
                MessageModel.conversation_id == conversation_id,
                MessageModel.deleted_at.is_(None),
            )
            .order_by(MessageModel.created_at.desc(), MessageModel.id.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

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
        stmt = select(MessageModel).where(
            MessageModel.conversation_id == conversation_id,
            MessageModel.deleted_at.is_(None),
        )
        if before is not None:
            stmt = stmt.where(MessageModel.created_at < before)
        if after is not None:
            stmt = stmt.where(MessageModel.created_at > after)
            stmt = stmt.order_by(MessageModel.created_at.asc(), MessageModel.id.asc())
        else:
            stmt = stmt.order_by(MessageModel.created_at.desc(), MessageModel.id.desc())
        if search:
            stmt = stmt.where(_contains(MessageModel.content, search))
        stmt = stmt.offset(offset).limit(limit)
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def count_messages(
        self, conversation_id: UUID, *, search: str | None = None
    ) -> int:
        stmt = select(func.count(MessageModel.id)).where(
            MessageModel.conversation_id == conversation_id,
            MessageModel.deleted_at.is_(None),
        )
        if search:
            stmt = stmt.where(_contains(MessageModel.content, search))
        result = await self._session.execute(stmt)
        return int(result.scalar_one())

    async def count_unread(
        self,
        conversation_id: UUID,
        user_id: str,
        since: datetime | None,
    ) -> int:
        stmt = select(func.count(MessageModel.id)).where(
            MessageModel.conversation_id == conversation_id,
            MessageModel.deleted_at.is_(None),
            MessageModel.sender_id != user_id,
        )
        if since is not None:
            stmt = stmt.where(MessageModel.created_at > since)
        result = await self._session.execute(stmt)
        return int(result.scalar_one())

    async def search(
        self, conversation_ids: list[UUID], params: MessageSearchParams
    ) -> list[Message]:
        if not conversation_ids:
            return []
        stmt = select(MessageModel).where(
            MessageModel.conversation_id.in_(conversation_ids),
            MessageModel.deleted_at.is_(None),
            _contains(MessageModel.content, params.query),
        )
        if params.type:
            stmt = stmt.where(MessageModel.type == params.type)
        if params.from_date:
            stmt = stmt.where(MessageModel.created_at >= params.from_date)
        if params.to_date:
            stmt = stmt.where(MessageModel.created_at <= params.to_date)
        stmt = stmt.order_by(MessageModel.created_at.desc()).limit(
            min(params.limit, SEARCH_RESULT_LIMIT)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, message: Message) -> Message:
        model = mapper.entity_to_model(message)
        self._session.add(model)
        await self._session.flush()
        return mapper.model_to_entity(model)

    async def update_content(
        self,
        message_id: UUID,
        content: str,
        metadata: dict[str, Any],
        edited_at: datetime,
    ) -> None:
        stmt = (
            update(MessageModel)
            .where(MessageModel.id == message_id)
            .values(content=content, metadata_=metadata, edited_at=edited_at)
        )
        await self._session.execute(stmt)

    async def soft_delete(self, message_id: UUID, deleted_by: str, ts: datetime) -> None:
        stmt = (
            update(MessageModel)
            .where(MessageModel.id == message_id)
            .values(deleted_at=ts, deleted_by=deleted_by)
        )
        await self._session.execute(stmt)


class ReactionRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_for_user(self, message_id: UUID, user_id: str) -> list[MessageReaction]:
        stmt = select(MessageReactionModel).where(
            MessageReactionModel.message_id == message_id,
            MessageReactionModel.user_id == user_id,
        )
        result = await self._session.execute(stmt)
        return [mapper.reaction_to_entity(m) for m in result.scalars().all()]

    async def add(self, reaction: MessageReaction) -> None:
        stmt = (
            pg_insert(MessageReactionModel)
            .values(
                message_id=reaction.message_id,
                user_id=reaction.user_id,
                emoji=reaction.emoji,
                created_at=reaction.created_at,
            )
            .on_conflict_do_nothing(constraint="uq_message_reaction")
        )
        await self._session.execute(stmt)

    async def remove(self, message_id: UUID, user_id: str, emoji: str) -> None:
        stmt = delete(MessageReactionModel).where(
            MessageReactionModel.message_id == message_id,
            MessageReactionModel.user_id == user_id,
            MessageReactionModel.emoji == emoji,
        )
        await self._session.execute(stmt)

    async def counts_for_messages(
        self, message_ids: list[UUID]
    ) -> dict[UUID, dict[str, int]]:
        if not message_ids:
            return {}
        stmt = (
            select(
                MessageReactionModel.message_id,
                MessageReactionModel.emoji,
                func.count(MessageReactionModel.id),
            )
            .where(MessageReactionModel.message_id.in_(message_ids))
            .group_by(MessageReactionModel.message_id, MessageReactionModel.emoji)
        )
        result = await self._session.execute(stmt)
        counts: dict[UUID, dict[str, int]] = {}
        for message_id, emoji, count in result.all():
            counts.setdefault(message_id, {})[emoji] = int(count)
        return counts


class ReadReceiptRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def read_message_ids(self, user_id: str, message_ids: list[UUID]) -> set[UUID]:
        if not message_ids:
            return set()
        stmt = select(MessageReadReceiptModel.message_id).where(
            MessageReadReceiptModel.user_id == user_id,
            MessageReadReceiptModel.message_id.in_(message_ids),
        )
        result = await self._session.execute(stmt)
        return set(result.scalars().all())

    async def add_many(self, receipts: list[MessageReadReceipt]) -> None:
        if not receipts:
            return
        stmt = (
            pg_insert(MessageReadReceiptModel)
            .values(
                [
                    {"message_id": r.message_id, "user_id": r.user_id, "read_at": r.read_at}
                    for r in receipts
                ]
            )
            .on_conflict_do_nothing(constraint="uq_message_read_receipt")
        )
        await self._session.execute(stmt)
