from __future__ import annotations

import logging

import httpx

from communication_service.application.ports.bus import EventPublisher
from communication_service.application.ports.channels import ChannelSender
from communication_service.config import Settings
from communication_service.infrastructure.channels.http_gateway import (
    EmailSender,
    PushSender,
    SmsSender,
)
from communication_service.infrastructure.channels.in_app import InAppSender

logger = logging.getLogger(__name__)


def build_senders(
    settings: Settings,
    publisher: EventPublisher,
    client: httpx.AsyncClient,
) -> dict[str, ChannelSender]:
    """Senders keyed by channel. Channels without a configured gateway are left out."""
    senders: dict[str, ChannelSender] = {
        "in_app": InAppSender(publisher, settings.REDIS_PUBSUB_CHANNEL),
    }
    if settings.EMAIL_GATEWAY_URL:
        senders["email"] = EmailSender(
            client,
            settings.EMAIL_GATEWAY_URL,
            api_key=settings.GATEWAY_API_KEY,
            sender=settings.EMAIL_FROM,
        )
    if settings.SMS_GATEWAY_URL:
        senders["sms"] = SmsSender(
            client, settings.SMS_GATEWAY_URL, api_key=settings.GATEWAY_API_KEY
        )
    if settings.PUSH_GATEWAY_URL:
        senders["push"] = PushSender(
            client, settings.PUSH_GATEWAY_URL, api_key=settings.GATEWAY_API_KEY
        )
    logger.info("Notification channels enabled: %s", ", ".join(sorted(senders)))
    return senders
