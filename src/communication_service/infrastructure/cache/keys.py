"""Cache key builders. Patterns ending in ``*`` are deleted with SCAN."""
from __future__ import annotations

from typing import Any
from uuid import UUID


def _join(*parts: Any) -> str:
    return ":".join("-" if p is None else str(p) for p in parts)


def conversation(conversation_id: UUID, *parts: Any) -> str:
    return _join("conversation", conversation_id, *parts)


def conversation_pattern(conversation_id: UUID) -> str:
    return f"conversation:{conversation_id}*"


def user_conversations(user_id: str, *parts: Any) -> str:
    return _join("user_conversations", user_id, *parts)


def user_conversations_pattern(user_id: str) -> str:
    return f"user_conversations:{user_id}:*"


def conversation_messages(conversation_id: UUID, *parts: Any) -> str:
    return _join("conversation_messages", conversation_id, *parts)


def conversation_messages_pattern(conversation_id: UUID) -> str:
    return f"conversation_messages:{conversation_id}:*"


def message(message_id: UUID) -> str:
    return f"message:{message_id}"


def unread(conversation_id: UUID, user_id: str) -> str:
    return f"unread:{conversation_id}:{user_id}"


def notification(notification_id: UUID) -> str:
    return f"notification:{notification_id}"


def user_notifications(user_id: str, *parts: Any) -> str:
    return _join("user_notifications", user_id, *parts)


def user_notifications_pattern(user_id: str) -> str:
    return f"user_notifications:{user_id}:*"


def presence(user_id: str) -> str:
    return f"presence:{user_id}"


def typing(conversation_id: UUID) -> str:
    return f"typing:{conversation_id}"
