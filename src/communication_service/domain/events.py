"""Real-time event names shared by the outbox, Pub/Sub fan-out and WebSocket layer."""
from __future__ import annotations

from enum import StrEnum


class EventType(StrEnum):
    CONVERSATION_CREATED = "conversation:created"
    CONVERSATION_UPDATED = "conversation:updated"
    MESSAGE_NEW = "message:new"
    MESSAGE_UPDATED = "message:updated"
    MESSAGE_DELETED = "message:deleted"
    MESSAGE_READ = "message:read"
    TYPING_START = "typing:start"
    TYPING_STOP = "typing:stop"
    PRESENCE_UPDATED = "presence:updated"
    NOTIFICATION_NEW = "notification:new"
