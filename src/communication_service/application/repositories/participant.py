from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from communication_service.domain.entities.participant import Participant


class ParticipantReader(Protocol):
    async def get(
        self,
        conversation_id: UUID,
        user_id: str,
        *,
        active_only: bool = True,
    ) -> Participant | None: ...

    async def is_participant(self, conversation_id: UUID, user_id: str) -> bool:
        """True for participants that have not left."""
        ...

    async def list_participants(
        self,
        conversation_id: UUID,
        *,
        active_only: bool = True,
    ) -> list[Participant]: ...

    async def list_for_user(self, user_id: str) -> list[Participant]:
        """Active participations of a user across conversations."""
        ...


class ParticipantWriter(Protocol):
    async def add(self, participant: Participant) -> None: ...

    async def add_many(self, participants: list[Participant]) -> None: ...

    async def mark_left(self, conversation_id: UUID, user_id: str, ts: datetime) -> None: ...

    async def update(
        self,
        conversation_id: UUID,
        user_id: str,
        values: dict[str, Any],
    ) -> None: ...
