from __future__ import annotations

from typing import Protocol

from communication_service.domain.entities.presence import UserPresence


class PresenceRepository(Protocol):
    async def get(self, user_id: str) -> UserPresence | None: ...

    async def get_many(self, user_ids: list[str]) -> dict[str, UserPresence]: ...

    async def upsert(self, presence: UserPresence) -> None: ...

    async def list_by_status(self, statuses: list[str]) -> list[UserPresence]: ...
