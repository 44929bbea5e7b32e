from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from communication_service.domain.entities.presence import UserPresence
from communication_service.infrastructure.db.mappers import presence as mapper
from communication_service.infrastructure.db.models.presence import UserPresenceModel


class PresenceRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: str) -> UserPresence | None:
        model = await self._session.get(UserPresenceModel, user_id)
        return mapper.model_to_entity(model) if model else None

    async def get_many(self, user_ids: list[str]) -> dict[str, UserPresence]:
        if not user_ids:
            return {}
        stmt = select(UserPresenceModel).where(UserPresenceModel.user_id.in_(user_ids))
        result = await self._session.execute(stmt)
        return {m.user_id: mapper.model_to_entity(m) for m in result.scalars().all()}

    async def upsert(self, presence: UserPresence) -> None:
        values = {
            "user_id": presence.user_id,
            "status": presence.status,
            "status_message": presence.status_message,
            "last_seen_at": presence.last_seen_at,
            "last_active_at": presence.last_active_at,
            "active_connections": presence.active_connections,
        }
        stmt = pg_insert(UserPresenceModel).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[UserPresenceModel.user_id],
            set_={k: v for k, v in values.items() if k != "user_id"},
        )
        await self._session.execute(stmt)

    async def list_by_status(self, statuses: list[str]) -> list[UserPresence]:
        stmt = select(UserPresenceModel).where(UserPresenceModel.status.in_(statuses))
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]
