from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from communication_service.domain.value_objects.enums import ParticipantRole


@dataclass(frozen=True, slots=True)
class Participant:
    conversation_id: UUID
    user_id: str
    role: str
    joined_at: datetime
    left_at: datetime | None = None
    last_read_at: datetime | None = None
    is_muted: bool = False
    muted_until: datetime | None = None
    archived_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.left_at is None

    @property
    def is_admin(self) -> bool:
        return self.role == ParticipantRole.ADMIN
