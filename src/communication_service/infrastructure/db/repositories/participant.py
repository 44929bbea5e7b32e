from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from communication_service.domain.entities.participant import Participant
from communication_service.infrastructure.db.mappers import participant as mapper
from communication_service.infrastructure.db.models.participant import ParticipantModel


class ParticipantReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(
        self,
        conversation_id: UUID,
        user_id: str,
        *,
        active_only: bool = True,
    ) -> Participant | None:
        stmt = select(ParticipantModel).where(
            ParticipantModel.conversation_id == conversation_id,
            ParticipantModel.user_id == user_id,
        )
        if active_only:
            stmt = stmt.where(ParticipantModel.left_at.is_(None))
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def is_participant(self, conversation_id: UUID, user_id: str) -> bool:
        stmt = (
            select(ParticipantModel.id)
            .where(
                ParticipantModel.conversation_id == conversation_id,
                ParticipantModel.user_id == user_id,
                ParticipantModel.left_at.is_(None),
            )
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def list_participants(
        self,
        conversation_id: UUID,
        *,
        active_only: bool = True,
    ) -> list[Participant]:
        stmt = (
            select(ParticipantModel)
            .where(ParticipantModel.conversation_id == conversation_id)
            .order_by(ParticipantModel.joined_at.asc())
        )
        if active_only:
            stmt = stmt.where(ParticipantModel.left_at.is_(None))
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def list_for_user(self, user_id: str) -> list[Participant]:
        stmt = select(ParticipantModel).where(
            ParticipantModel.user_id == user_id,
            ParticipantModel.left_at.is_(None),
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]


class ParticipantWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, participant: Participant) -> None:
        model = mapper.entity_to_model(participant)
        self._session.add(model)
        await self._session.flush()

    async def add_many(self, participants: list[Participant]) -> None:
        self._session.add_all([mapper.entity_to_model(p) for p in participants])
        await self._session.flush()

    async def mark_left(self, conversation_id: UUID, user_id: str, ts: datetime) -> None:
        stmt = (
            update(ParticipantModel)
            .where(
                ParticipantModel.conversation_id == conversation_id,
                ParticipantModel.user_id == user_id,
            )
            .values(left_at=ts)
        )
        await self._session.execute(stmt)

    async def update(
        self,
        conversation_id: UUID,
        user_id: str,
        values: dict[str, Any],
    ) -> None:
        stmt = (
            update(ParticipantModel)
            .where(
                ParticipantModel.conversation_id == conversation_id,
                ParticipantModel.user_id == user_id,
            )
            .values(**values)
        )
        await self._session.execute(stmt)
