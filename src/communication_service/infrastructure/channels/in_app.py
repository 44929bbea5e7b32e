from __future__ import annotations

from communication_service.application.dto.payloads import notification_payload
from communication_service.application.ports.bus import EventPublisher
from communication_service.domain.entities.notification import Notification
from communication_service.domain.events import EventType
from communication_service.domain.value_objects.enums import NotificationChannel


class InAppSender:
    """Pushes the notification to the recipient's live WebSocket connections."""

    channel = NotificationChannel.IN_APP

    def __init__(self, publisher: EventPublisher, pubsub_channel: str) -> None:
        self._publisher = publisher
        self._pubsub_channel = pubsub_channel

    async def send(self, notification: Notification) -> None:
        await self._publisher.publish(
            self._pubsub_channel,
            EventType.NOTIFICATION_NEW.value,
            {"user_ids": [notification.recipient_id]},
            notification_payload(notification),
        )
