"""Import all models so Alembic can discover them via Base.metadata."""
from communication_service.infrastructure.db.models.conversation import ConversationModel
from communication_service.infrastructure.db.models.message import (
    MessageAttachmentModel,
    MessageModel,
    MessageReactionModel,
    MessageReadReceiptModel,
)
from communication_service.infrastructure.db.models.notification import (
    NotificationModel,
    NotificationPreferenceModel,
    NotificationQueueModel,
    NotificationTemplateModel,
)
from communication_service.infrastructure.db.models.outbox import OutboxMessageModel
from communication_service.infrastructure.db.models.participant import ParticipantModel
from communication_service.infrastructure.db.models.presence import UserPresenceModel

__all__ = [
    "ConversationModel",
    "MessageAttachmentModel",
    "MessageModel",
    "MessageReactionModel",
    "MessageReadReceiptModel",
    "NotificationModel",
    "NotificationPreferenceModel",
    "NotificationQueueModel",
    "NotificationTemplateModel",
    "OutboxMessageModel",
    "ParticipantModel",
    "UserPresenceModel",
]
