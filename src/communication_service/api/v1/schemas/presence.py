from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from communication_service.domain.value_objects.enums import PresenceStatus


class PresenceUpdateRequest(BaseModel):
    status: PresenceStatus
    status_message: str | None = Field(default=None, max_length=255)


class PresenceResponse(BaseModel):
    user_id: str
    status: str
    status_message: str | None = None
    last_seen_at: datetime
    last_active_at: datetime

    model_config = {"from_attributes": True}
