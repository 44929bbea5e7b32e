from __future__ import annotations

import dataclasses
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

import pytest

from communication_service.application.ports.channels import DeliveryError
from communication_service.domain.value_objects.enums import (
    NotificationChannel,
    NotificationPriority,
    NotificationStatus,
    QueueStatus,
)
from communication_service.infrastructure.cache import keys
from communication_service.infrastructure.cache.pending import PendingCacheOps
from communication_service.infrastructure.cache.redis_cache import RedisCache
from communication_service.infrastructure.cache.repositories.notification import (
    CachedNotificationRepository,
)
from communication_service.workers.notification_processor import NotificationProcessor
from tests.conftest import FakeUoW, make_notification, make_queue_item

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class RecordingSender:
    def __init__(self, channel: str, error: Exception | None = None) -> None:
        self.channel = channel
        self.error = error
        self.sent: list = []

    async def send(self, notification) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append(notification)


class CountingFactory:
    """Hands out the same fake UoW and tracks how many are open."""

    def __init__(self, uow: FakeUoW) -> None:
        self.uow = uow
        self.open = 0

    @asynccontextmanager
    async def __call__(self):
        self.open += 1
        try:
            yield self.uow
        finally:
            self.open -= 1


def _processor(uow: FakeUoW, *senders: RecordingSender, max_attempts: int = 3):
    return NotificationProcessor(
        CountingFactory(uow),
        {s.channel: s for s in senders},
        batch_size=10,
        max_attempts=max_attempts,
        retry_delay=60,
        claim_timeout=300,
    )


def _seed(uow: FakeUoW, channel: str = NotificationChannel.IN_APP, **item_fields):
    notification = make_notification(channels=[channel])
    uow.notifications._store[notification.id] = notification
    item = make_queue_item(notification.id, channel=channel, **item_fields)
    uow.notification_queue._items.append(item)
    return notification, item


def test_next_attempt_is_linear():
    processor = _processor(FakeUoW())
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    assert processor.next_attempt_at(1, now) == now + timedelta(seconds=60)
    assert processor.next_attempt_at(2, now) == now + timedelta(seconds=120)
    assert processor.next_attempt_at(3, now) is None


@pytest.mark.asyncio
async def test_empty_queue():
    assert await _processor(FakeUoW()).process_batch() == 0


@pytest.mark.asyncio
async def test_in_app_delivery_marks_delivered():
    uow = FakeUoW()
    notification, item = _seed(uow)
    sender = RecordingSender(NotificationChannel.IN_APP)

    processed = await _processor(uow, sender).process_batch()

    assert processed == 1
    assert sender.sent == [notification]
    assert uow.notification_queue.completed == [item.id]
    stored = uow.notifications._store[notification.id]
    assert stored.status == NotificationStatus.DELIVERED
    assert stored.delivered_at is not None


@pytest.mark.asyncio
async def test_email_delivery_marks_sent():
    uow = FakeUoW()
    notification, _ = _seed(uow, NotificationChannel.EMAIL)

    await _processor(uow, RecordingSender(NotificationChannel.EMAIL)).process_batch()

    assert uow.notifications._store[notification.id].status == NotificationStatus.SENT


@pytest.mark.asyncio
async def test_failure_schedules_retry():
    uow = FakeUoW()
    notification, item = _seed(uow, NotificationChannel.EMAIL)
    sender = RecordingSender(NotificationChannel.EMAIL, DeliveryError("gateway returned 503"))

    await _processor(uow, sender).process_batch()

    [(item_id, error, retry_at)] = uow.notification_queue.failures
    assert item_id == item.id
    assert error == "gateway returned 503"
    assert retry_at is not None
    assert uow.notifications._store[notification.id].status == NotificationStatus.PENDING


@pytest.mark.asyncio
async def test_last_attempt_fails_notification():
    uow = FakeUoW()
    notification, _ = _seed(uow, NotificationChannel.EMAIL, attempt_count=2)
    sender = RecordingSender(NotificationChannel.EMAIL, DeliveryError("bounced"))

    await _processor(uow, sender).process_batch()

    [(_, _, retry_at)] = uow.notification_queue.failures
    assert retry_at is None
    stored = uow.notifications._store[notification.id]
    assert stored.status == NotificationStatus.FAILED
    assert stored.error_message == "bounced"


@pytest.mark.asyncio
async def test_failed_channel_does_not_downgrade_delivered():
    uow = FakeUoW()
    notification, _ = _seed(uow, NotificationChannel.SMS, attempt_count=2)
    uow.notifications._store[notification.id] = dataclasses.replace(
        notification, status=NotificationStatus.DELIVERED
    )

    await _processor(uow, RecordingSender(NotificationChannel.SMS, DeliveryError("x"))).process_batch()

    assert uow.notifications._store[notification.id].status == NotificationStatus.DELIVERED


@pytest.mark.asyncio
async def test_missing_sender_is_a_failure():
    uow = FakeUoW()
    _, item = _seed(uow, NotificationChannel.PUSH)

    await _processor(uow).process_batch()

    [(item_id, error, _)] = uow.notification_queue.failures
    assert item_id == item.id
    assert "push" in error


@pytest.mark.asyncio
async def test_unexpected_error_is_recorded():
    uow = FakeUoW()
    _seed(uow, NotificationChannel.EMAIL)
    sender = RecordingSender(NotificationChannel.EMAIL, RuntimeError())

    processed = await _processor(uow, sender).process_batch()

    assert processed == 1
    assert uow.notification_queue.failures[0][1] == "RuntimeError"


@pytest.mark.asyncio
async def test_scheduled_row_waits_until_due():
    uow = FakeUoW()
    _, item = _seed(uow, scheduled_for=NOW + timedelta(hours=1))
    processor = _processor(uow, RecordingSender(NotificationChannel.IN_APP))

    assert await processor.process_batch(NOW) == 0
    assert await processor.process_batch(NOW + timedelta(hours=1)) == 1
    assert uow.notification_queue.get(item.id).status == QueueStatus.COMPLETED


@pytest.mark.asyncio
async def test_failed_row_retried_only_after_next_attempt():
    uow = FakeUoW()
    _, item = _seed(
        uow,
        status=QueueStatus.FAILED,
        attempt_count=1,
        next_attempt_at=NOW + timedelta(minutes=1),
    )
    processor = _processor(uow, RecordingSender(NotificationChannel.IN_APP))

    assert await processor.process_batch(NOW) == 0
    assert await processor.process_batch(NOW + timedelta(minutes=1)) == 1
    assert uow.notification_queue.completed == [item.id]


@pytest.mark.asyncio
async def test_permanently_failed_row_is_never_claimed():
    uow = FakeUoW()
    _seed(uow, status=QueueStatus.FAILED, attempt_count=3, next_attempt_at=None)

    assert await _processor(uow).process_batch(NOW + timedelta(days=30)) == 0


@pytest.mark.asyncio
async def test_claim_order_is_priority_then_age():
    uow = FakeUoW()
    notification = make_notification()
    queue = uow.notification_queue
    order = [
        (NotificationPriority.LOW, 0),
        (NotificationPriority.NORMAL, 5),
        (NotificationPriority.NORMAL, 1),
        (NotificationPriority.URGENT, 9),
        (NotificationPriority.HIGH, 3),
    ]
    for priority, age in order:
        queue._items.append(
            make_queue_item(
                notification.id, priority=priority, created_at=NOW - timedelta(minutes=age)
            )
        )

    claimed = await queue.claim_due(4, NOW)

    assert [(i.priority, NOW - i.created_at) for i in claimed] == [
        (NotificationPriority.URGENT, timedelta(minutes=9)),
        (NotificationPriority.HIGH, timedelta(minutes=3)),
        (NotificationPriority.NORMAL, timedelta(minutes=5)),
        (NotificationPriority.NORMAL, timedelta(minutes=1)),
    ]
    assert all(i.status == QueueStatus.PROCESSING and i.started_at == NOW for i in claimed)


@pytest.mark.asyncio
async def test_stale_processing_row_is_reclaimed():
    uow = FakeUoW()
    _, stale = _seed(uow, status=QueueStatus.PROCESSING, started_at=NOW - timedelta(minutes=6))
    _, fresh = _seed(uow, status=QueueStatus.PROCESSING, started_at=NOW - timedelta(minutes=1))

    processed = await _processor(uow, RecordingSender(NotificationChannel.IN_APP)).process_batch(NOW)

    assert processed == 1
    assert uow.notification_queue.completed == [stale.id]
    assert uow.notification_queue.get(fresh.id).status == QueueStatus.PROCESSING


@pytest.mark.asyncio
async def test_lookup_error_is_recorded_as_failure(monkeypatch):
    uow = FakeUoW()
    _, item = _seed(uow)

    async def unavailable(notification_id):
        raise ConnectionError("database unavailable")

    monkeypatch.setattr(uow.notifications, "get_by_id", unavailable)

    await _processor(uow, RecordingSender(NotificationChannel.IN_APP)).process_batch(NOW)

    stored = uow.notification_queue.get(item.id)
    assert stored.status == QueueStatus.FAILED
    assert stored.last_error == "database unavailable"
    assert stored.attempt_count == 1
    assert stored.next_attempt_at is not None


@pytest.mark.asyncio
async def test_settle_error_falls_back_to_failure(monkeypatch):
    uow = FakeUoW()
    _, item = _seed(uow)

    async def broken(*args, **kwargs):
        raise RuntimeError("write conflict")

    monkeypatch.setattr(uow.notifications_w, "mark_sent", broken)

    await _processor(uow, RecordingSender(NotificationChannel.IN_APP)).process_batch(NOW)

    stored = uow.notification_queue.get(item.id)
    assert stored.status == QueueStatus.FAILED
    assert stored.last_error == "settle failed: write conflict"
    assert stored.next_attempt_at is not None


@pytest.mark.asyncio
async def test_unsettled_row_is_picked_up_after_claim_timeout(monkeypatch):
    uow = FakeUoW()
    _, item = _seed(uow, channel=NotificationChannel.EMAIL)
    queue = uow.notification_queue
    original = queue.mark_failed

    async def broken(*args, **kwargs):
        raise RuntimeError("write conflict")

    monkeypatch.setattr(queue, "mark_failed", broken)
    sender = RecordingSender(NotificationChannel.EMAIL, DeliveryError("gateway returned 503"))
    processor = _processor(uow, sender)

    await processor.process_batch(NOW)
    assert queue.get(item.id).status == QueueStatus.PROCESSING

    monkeypatch.setattr(queue, "mark_failed", original)
    sender.error = None
    assert await processor.process_batch(NOW + timedelta(minutes=1)) == 0
    assert await processor.process_batch(NOW + timedelta(minutes=6)) == 1
    assert queue.get(item.id).status == QueueStatus.COMPLETED


@pytest.mark.asyncio
async def test_send_happens_outside_any_unit_of_work():
    uow = FakeUoW()
    _seed(uow, channel=NotificationChannel.EMAIL)
    factory = CountingFactory(uow)
    open_during_send: list[int] = []

    class Sender(RecordingSender):
        async def send(self, notification) -> None:
            open_during_send.append(factory.open)

    processor = NotificationProcessor(
        factory, {NotificationChannel.EMAIL: Sender(NotificationChannel.EMAIL)}
    )
    await processor.process_batch(NOW)

    assert open_during_send == [0]
    assert factory.open == 0


@pytest.mark.asyncio
async def test_settle_invalidates_recipient_notification_cache(fake_redis):
    uow = FakeUoW()
    notification, _ = _seed(uow)
    pending = PendingCacheOps()
    cached = CachedNotificationRepository(
        uow.notifications, uow.notifications_w, RedisCache(fake_redis), pending,
        ttl=60, list_ttl=30,
    )
    uow.notifications = cached
    uow.notifications_w = cached

    await _processor(uow, RecordingSender(NotificationChannel.IN_APP)).process_batch(NOW)

    assert keys.user_notifications_pattern(notification.recipient_id) in pending.invalidations
    assert keys.notification(notification.id) in pending.invalidations
