from __future__ import annotations

from communication_service.domain.entities.conversation import Conversation
from communication_service.infrastructure.db.models.conversation import ConversationModel


def model_to_entity(model: ConversationModel) -> Conversation:
    return Conversation(
        id=model.id,
        type=model.type,
        name=model.name,
        description=model.description,
        avatar_url=model.avatar_url,
        created_by=model.created_by,
        created_at=model.created_at,
        updated_at=model.updated_at,
        last_message_at=model.last_message_at,
        deleted_at=model.deleted_at,
        metadata=dict(model.metadata_ or {}),
    )


def entity_to_model(entity: Conversation) -> ConversationModel:
    return ConversationModel(
        id=entity.id,
        type=entity.type,
        name=entity.name,
        description=entity.description,
        avatar_url=entity.avatar_url,
        created_by=entity.created_by,
        metadata_=dict(entity.metadata),
        last_message_at=entity.last_message_at,
        created_at=entity.created_at,
        updated_at=entity.updated_at,
        deleted_at=entity.deleted_at,
    )
