from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Select, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from communication_service.domain.entities.conversation import Conversation
from communication_service.domain.value_objects.enums import ConversationType
from communication_service.infrastructure.db.mappers import conversation as mapper
from communication_service.infrastructure.db.models.conversation import ConversationModel
from communication_service.infrastructure.db.models.participant import ParticipantModel


class ConversationReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        result = await self._session.get(ConversationModel, conversation_id)
        if result is None or result.deleted_at is not None:
            return None
        return mapper.model_to_entity(result)

    async def find_direct_between(self, user_a: str, user_b: str) -> Conversation | None:
        p1 = aliased(ParticipantModel)
        p2 = aliased(ParticipantModel)
        stmt = (
            select(ConversationModel)
            .join(p1, p1.conversation_id == ConversationModel.id)
            .join(p2, p2.conversation_id == ConversationModel.id)
            .where(
                ConversationModel.type == ConversationType.DIRECT,
                ConversationModel.deleted_at.is_(None),
                p1.user_id == user_a,
                p2.user_id == user_b,
                p1.left_at.is_(None),
                p2.left_at.is_(None),
            )
            .limit(1)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    def _for_user(
        self,
        stmt: Select[Any],
        user_id: str,
        type: str | None,
        include_archived: bool,
    ) -> Select[Any]:
        stmt = stmt.join(
            ParticipantModel,
            ParticipantModel.conversation_id == ConversationModel.id,
        ).where(
            ParticipantModel.user_id == user_id,
            ParticipantModel.left_at.is_(None),
            ConversationModel.deleted_at.is_(None),
        )
        if type:
            stmt = stmt.where(ConversationModel.type == type)
        if not include_archived:
            stmt = stmt.where(ParticipantModel.archived_at.is_(None))
        return stmt

    async def list_for_user(
        self,
        user_id: str,
        *,
        type: str | None = None,
        include_archived: bool = False,
        offset: int = 0,
        limit: int = 20,
    ) -> list[Conversation]:
        last_activity = func.coalesce(
            ConversationModel.last_message_at, ConversationModel.updated_at
        )
        stmt = self._for_user(select(ConversationModel), user_id, type, include_archived)
        stmt = (
            stmt.order_by(last_activity.desc(), ConversationModel.id)
            .offset(offset)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def count_for_user(
        self,
        user_id: str,
        *,
        type: str | None = None,
        include_archived: bool = False,
    ) -> int:
        stmt = self._for_user(
            select(func.count(ConversationModel.id)).select_from(ConversationModel),
            user_id,
            type,
            include_archived,
        )
        result = await self._session.execute(stmt)
        return int(result.scalar_one())


class ConversationWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, conversation: Conversation) -> Conversation:
        model = mapper.entity_to_model(conversation)
        self._session.add(model)
        await self._session.flush()
        return mapper.model_to_entity(model)

    async def update(self, conversation_id: UUID, values: dict[str, Any]) -> None:
        values = dict(values)
        if "metadata" in values:
            values["metadata_"] = values.pop("metadata")
        if not values:
            return
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(**values)
        )
        await self._session.execute(stmt)

    async def soft_delete(self, conversation_id: UUID, ts: datetime) -> None:
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(deleted_at=ts)
        )
        await self._session.execute(stmt)

    async def touch_last_message_at(
        self,
        conversation_id: UUID,
        ts: datetime,
    ) -> None:
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(last_message_at=ts)
        )
        await self._session.execute(stmt)
