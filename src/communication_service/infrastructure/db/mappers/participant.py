from __future__ import annotations

from communication_service.domain.entities.participant import Participant
from communication_service.infrastructure.db.models.participant import ParticipantModel


def model_to_entity(model: ParticipantModel) -> Participant:
    return Participant(
        conversation_id=model.conversation_id,
        user_id=model.user_id,
        role=model.role,
        joined_at=model.joined_at,
        left_at=model.left_at,
        last_read_at=model.last_read_at,
        is_muted=model.is_muted,
        muted_until=model.muted_until,
        archived_at=model.archived_at,
    )


def entity_to_model(entity: Participant) -> ParticipantModel:
    return ParticipantModel(
        conversation_id=entity.conversation_id,
        user_id=entity.user_id,
        role=entity.role,
        joined_at=entity.joined_at,
        left_at=entity.left_at,
        last_read_at=entity.last_read_at,
        is_muted=entity.is_muted,
        muted_until=entity.muted_until,
        archived_at=entity.archived_at,
    )
