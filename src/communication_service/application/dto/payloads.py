"""JSON-safe event payloads shared by the outbox, Pub/Sub and WebSocket layers."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from communication_service.domain.entities.conversation import Conversation
from communication_service.domain.entities.message import Message
from communication_service.domain.entities.notification import Notification
from communication_service.domain.entities.participant import Participant
from communication_service.domain.entities.presence import UserPresence


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def conversation_payload(
    conversation: Conversation, participants: list[Participant] | None = None
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "conversation_id": str(conversation.id),
        "type": conversation.type,
        "name": conversation.name,
        "description": conversation.description,
        "avatar_url": conversation.avatar_url,
        "created_by": conversation.created_by,
        "last_message_at": _iso(conversation.last_message_at),
        "updated_at": _iso(conversation.updated_at),
    }
    if participants is not None:
        payload["participants"] = [
            {"user_id": p.user_id, "role": p.role} for p in participants
        ]
    return payload


def message_payload(message: Message) -> dict[str, Any]:
    return {
        "message_id": str(message.id),
        "conversation_id": str(message.conversation_id),
        "sender_id": message.sender_id,
        "type": message.type,
        "content": message.content,
        "reply_to_id": str(message.reply_to_id) if message.reply_to_id else None,
        "metadata": message.metadata,
        "created_at": _iso(message.created_at),
        "edited_at": _iso(message.edited_at),
        "attachments": [
            {
                "id": str(a.id),
                "url": a.url,
                "file_name": a.file_name,
                "file_type": a.file_type,
                "file_size": a.file_size,
                "type": a.type,
                "thumbnail_url": a.thumbnail_url,
            }
            for a in message.attachments
        ],
    }


def notification_payload(notification: Notification) -> dict[str, Any]:
    return {
        "notification_id": str(notification.id),
        "recipient_id": notification.recipient_id,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "priority": notification.priority,
        "action_url": notification.action_url,
        "metadata": notification.metadata,
        "created_at": _iso(notification.created_at),
    }


def presence_payload(presence: UserPresence) -> dict[str, Any]:
    return {
        "user_id": presence.user_id,
        "status": presence.status,
        "status_message": presence.status_message,
        "last_seen_at": _iso(presence.last_seen_at),
    }
