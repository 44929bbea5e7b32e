from __future__ import annotations

from typing import Protocol

from communication_service.domain.entities.notification import Notification


class DeliveryError(Exception):
    """Raised by a channel sender when delivery did not succeed."""


class ChannelSender(Protocol):
    """Delivers a notification over a single channel (email, sms, ...)."""

    channel: str

    async def send(self, notification: Notification) -> None: ...
