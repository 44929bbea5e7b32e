from __future__ import annotations

import dataclasses
import json

import httpx
import pytest

from communication_service.application.ports.channels import DeliveryError
from communication_service.config import Settings
from communication_service.domain.entities.notification import CHANNEL_CONTENT_KEY
from communication_service.domain.events import EventType
from communication_service.domain.value_objects.enums import NotificationPriority
from communication_service.infrastructure.bus.redis_pubsub import RedisPubSubPublisher
from communication_service.infrastructure.channels.http_gateway import (
    EmailSender,
    PushSender,
    SmsSender,
    mask_contact,
)
from communication_service.infrastructure.channels.in_app import InAppSender
from communication_service.infrastructure.channels.registry import build_senders
from tests.conftest import FakeRedis, make_notification


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_mask_contact():
    assert mask_contact("+15551234567") == "+15****67"
    assert mask_contact("abc") == "***"


@pytest.mark.asyncio
async def test_email_payload_and_auth_header():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(202, json={"id": "queued"})

    notification = dataclasses.replace(
        make_notification(),
        metadata={"email": "sam@example.com"},
        action_url="https://app.example/schedule",
    )
    async with _client(handler) as client:
        sender = EmailSender(
            client, "https://mail.example/send", api_key="k", sender="noreply@example.com"
        )
        await sender.send(notification)

    body = json.loads(seen[0].content)
    assert seen[0].headers["Authorization"] == "Bearer k"
    assert body["to"] == "sam@example.com"
    assert body["subject"] == notification.title
    assert body["text"].endswith("https://app.example/schedule")


@pytest.mark.asyncio
async def test_sms_uses_its_own_rendering():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200)

    notification = dataclasses.replace(
        make_notification(),
        metadata={
            "phone": "+15551234567",
            CHANNEL_CONTENT_KEY: {"sms": {"subject": "Ice", "body": "Rink 2 at 18:00"}},
        },
    )
    async with _client(handler) as client:
        await SmsSender(client, "https://sms.example/send").send(notification)

    assert json.loads(seen[0].content)["message"] == "Ice: Rink 2 at 18:00"


@pytest.mark.asyncio
async def test_gateway_error_raises_delivery_error():
    async with _client(lambda request: httpx.Response(503, text="busy")) as client:
        sender = SmsSender(client, "https://sms.example/send")
        with pytest.raises(DeliveryError, match="503"):
            await sender.send(make_notification())


@pytest.mark.asyncio
async def test_unreachable_gateway_raises_delivery_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    async with _client(handler) as client:
        sender = PushSender(client, "https://push.example/send")
        with pytest.raises(DeliveryError):
            await sender.send(make_notification())


def test_push_priority_mapping():
    sender = PushSender(httpx.AsyncClient(), "https://push.example/send")

    urgent = sender.build_payload(make_notification(priority=NotificationPriority.URGENT))
    low = sender.build_payload(make_notification(priority=NotificationPriority.LOW))

    assert urgent["priority"] == "high"
    assert low["priority"] == "normal"


@pytest.mark.asyncio
async def test_in_app_sender_publishes_to_recipient():
    redis = FakeRedis()
    notification = make_notification(recipient_id="player-9")

    await InAppSender(RedisPubSubPublisher(redis), "fanout").send(notification)

    channel, raw = redis.published[0]
    body = json.loads(raw)
    assert channel == "fanout"
    assert body["event"] == EventType.NOTIFICATION_NEW
    assert body["data"]["route"] == {"conversation_ids": [], "user_ids": ["player-9"]}
    assert body["data"]["data"]["notification_id"] == str(notification.id)


def test_build_senders_only_configured_channels():
    cfg = Settings(
        POSTGRES_USER="u",
        POSTGRES_PASSWORD="p",
        POSTGRES_DB="d",
        EMAIL_GATEWAY_URL="https://mail.example/send",
    )

    senders = build_senders(cfg, RedisPubSubPublisher(FakeRedis()), httpx.AsyncClient())

    assert sorted(senders) == ["email", "in_app"]
