from __future__ import annotations

from communication_service.domain.entities.presence import UserPresence
from communication_service.infrastructure.db.models.presence import UserPresenceModel


def model_to_entity(model: UserPresenceModel) -> UserPresence:
    return UserPresence(
        user_id=model.user_id,
        status=model.status,
        last_seen_at=model.last_seen_at,
        last_active_at=model.last_active_at,
        status_message=model.status_message,
        active_connections=model.active_connections,
    )
