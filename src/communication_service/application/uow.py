from __future__ import annotations

from typing import Protocol

from communication_service.application.repositories.conversation import (
    ConversationReader,
    ConversationWriter,
)
from communication_service.application.repositories.message import (
    MessageReader,
    MessageWriter,
    ReactionRepository,
    ReadReceiptRepository,
)
from communication_service.application.repositories.notification import (
    NotificationQueueRepository,
    NotificationReader,
    NotificationWriter,
    PreferenceRepository,
    TemplateReader,
)
from communication_service.application.repositories.outbox import OutboxWriter
from communication_service.application.repositories.participant import (
    ParticipantReader,
    ParticipantWriter,
)
from communication_service.application.repositories.presence import PresenceRepository


class UnitOfWork(Protocol):
    conversations: ConversationReader
    conversations_w: ConversationWriter
    participants: ParticipantReader
    participants_w: ParticipantWriter
    messages: MessageReader
    messages_w: MessageWriter
    reactions: ReactionRepository
    receipts: ReadReceiptRepository
    notifications: NotificationReader
    notifications_w: NotificationWriter
    notification_queue: NotificationQueueRepository
    templates: TemplateReader
    preferences: PreferenceRepository
    presence: PresenceRepository
    outbox: OutboxWriter

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
    async def flush(self) -> None: ...
