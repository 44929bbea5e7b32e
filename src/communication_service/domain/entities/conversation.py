from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Conversation:
    id: UUID
    type: str
    name: str | None
    description: str | None
    avatar_url: str | None
    created_by: str
    created_at: datetime
    updated_at: datetime
    last_message_at: datetime | None = None
    deleted_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def last_activity_at(self) -> datetime:
        return self.last_message_at or self.updated_at
