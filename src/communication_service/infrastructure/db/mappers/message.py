from __future__ import annotations

from communication_service.domain.entities.message import (
    Message,
    MessageAttachment,
    MessageReaction,
)
from communication_service.infrastructure.db.models.message import (
    MessageAttachmentModel,
    MessageModel,
    MessageReactionModel,
)


def attachment_to_entity(model: MessageAttachmentModel) -> MessageAttachment:
    return MessageAttachment(
        id=model.id,
        message_id=model.message_id,
        url=model.url,
        file_name=model.file_name,
        file_type=model.file_type,
        file_size=model.file_size,
        type=model.type,
        thumbnail_url=model.thumbnail_url,
        width=model.width,
        height=model.height,
        duration=model.duration,
    )


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        conversation_id=model.conversation_id,
        sender_id=model.sender_id,
        type=model.type,
        content=model.content,
        created_at=model.created_at,
        reply_to_id=model.reply_to_id,
        metadata=dict(model.metadata_ or {}),
        edited_at=model.edited_at,
        deleted_at=model.deleted_at,
        deleted_by=model.deleted_by,
        attachments=[attachment_to_entity(a) for a in model.attachments],
    )


def entity_to_model(entity: Message) -> MessageModel:
    return MessageModel(
        id=entity.id,
        conversation_id=entity.conversation_id,
        sender_id=entity.sender_id,
        type=entity.type,
        content=entity.content,
        reply_to_id=entity.reply_to_id,
        metadata_=dict(entity.metadata),
        created_at=entity.created_at,
        edited_at=entity.edited_at,
        deleted_at=entity.deleted_at,
        deleted_by=entity.deleted_by,
        attachments=[
            MessageAttachmentModel(
                id=a.id,
                message_id=entity.id,
                url=a.url,
                file_name=a.file_name,
                file_type=a.file_type,
                file_size=a.file_size,
                type=a.type,
                thumbnail_url=a.thumbnail_url,
                width=a.width,
                height=a.height,
                duration=a.duration,
            )
            for a in entity.attachments
        ],
    )


def reaction_to_entity(model: MessageReactionModel) -> MessageReaction:
    return MessageReaction(
        message_id=model.message_id,
        user_id=model.user_id,
        emoji=model.emoji,
        created_at=model.created_at,
    )
