"""Email, SMS and push delivery through HTTP gateways."""
from __future__ import annotations

import logging
from typing import Any

import httpx

from communication_service.application.ports.channels import DeliveryError
from communication_service.domain.entities.notification import Notification
from communication_service.domain.value_objects.enums import NotificationChannel

logger = logging.getLogger(__name__)


def mask_contact(value: str) -> str:
    if len(value) <= 5:
        return "***"
    return value[:3] + "****" + value[-2:]


class HttpGatewaySender:
    """POSTs a JSON message to a provider gateway. One request per delivery attempt."""

    channel: str

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        *,
        api_key: str = "",
    ) -> None:
        self._client = client
        self._url = url
        self._api_key = api_key

    def build_payload(self, notification: Notification) -> dict[str, Any]:
        raise NotImplementedError

    def contact(self, notification: Notification) -> str:
        return notification.recipient_id

    async def send(self, notification: Notification) -> None:
        payload = self.build_payload(notification)
        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
        try:
            response = await self._client.post(self._url, json=payload, headers=headers)
        except httpx.RequestError as exc:
            raise DeliveryError(f"{self.channel} gateway unreachable: {exc}") from exc

        if response.status_code >= 400:
            raise DeliveryError(
                f"{self.channel} gateway returned {response.status_code}: {response.text[:200]}"
            )
        logger.info(
            "Delivered notification %s via %s to %s",
            notification.id,
            self.channel,
            mask_contact(self.contact(notification)),
        )


class EmailSender(HttpGatewaySender):
    channel = NotificationChannel.EMAIL

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        *,
        api_key: str = "",
        sender: str,
    ) -> None:
        super().__init__(client, url, api_key=api_key)
        self._sender = sender

    def contact(self, notification: Notification) -> str:
        return notification.metadata.get("email") or notification.recipient_id

    def build_payload(self, notification: Notification) -> dict[str, Any]:
        subject, body = notification.content_for(self.channel)
        if notification.action_url:
            body = f"{body}\n\n{notification.action_url}"
        return {
            "from": self._sender,
            "to": self.contact(notification),
            "recipient_id": notification.recipient_id,
            "subject": notification.metadata.get("subject") or subject,
            "text": body,
            "priority": notification.priority,
        }


class SmsSender(HttpGatewaySender):
    channel = NotificationChannel.SMS

    def contact(self, notification: Notification) -> str:
        return notification.metadata.get("phone") or notification.recipient_id

    def build_payload(self, notification: Notification) -> dict[str, Any]:
        subject, body = notification.content_for(self.channel)
        return {
            "to": self.contact(notification),
            "recipient_id": notification.recipient_id,
            "message": f"{subject}: {body}"[:480],
        }


class PushSender(HttpGatewaySender):
    channel = NotificationChannel.PUSH

    def build_payload(self, notification: Notification) -> dict[str, Any]:
        title, body = notification.content_for(self.channel)
        return {
            "recipient_id": notification.recipient_id,
            "title": title,
            "body": body,
            "data": {
                "notification_id": str(notification.id),
                "type": notification.type,
                "action_url": notification.action_url,
            },
            "priority": "high" if notification.priority in ("high", "urgent") else "normal",
        }
