from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from communication_service.application.exceptions import ValidationError
from communication_service.domain.events import EventType
from communication_service.domain.value_objects.enums import PresenceStatus
from communication_service.services import dashboard_service, presence_service
from tests.conftest import (
    FakeUoW,
    make_conversation,
    make_message,
    make_notification,
    make_presence,
)


@pytest.mark.asyncio
async def test_unknown_user_is_offline():
    presence = await presence_service.get_presence("ghost", FakeUoW())
    assert presence.status == PresenceStatus.OFFLINE


@pytest.mark.asyncio
async def test_update_presence_emits_to_conversations():
    uow = FakeUoW()
    conv = uow.seed_conversation(make_conversation(), "player-1", "player-2")

    presence = await presence_service.update_presence(
        "player-1", PresenceStatus.BUSY, "In a meeting", uow
    )

    assert presence.status == PresenceStatus.BUSY
    assert uow.presence._store["player-1"].status_message == "In a meeting"
    event = uow.outbox.events(EventType.PRESENCE_UPDATED)[0]
    assert event["route"]["conversation_ids"] == [str(conv.id)]
    assert event["route"]["user_ids"] == ["player-1"]


@pytest.mark.asyncio
async def test_status_message_length():
    with pytest.raises(ValidationError):
        await presence_service.update_presence(
            "player-1", PresenceStatus.ONLINE, "x" * 256, FakeUoW()
        )


@pytest.mark.asyncio
async def test_heartbeat_brings_away_user_online():
    uow = FakeUoW()
    await uow.presence.upsert(make_presence("player-1", PresenceStatus.AWAY))

    presence = await presence_service.heartbeat("player-1", uow)

    assert presence.status == PresenceStatus.ONLINE
    assert uow.outbox.events(EventType.PRESENCE_UPDATED)


@pytest.mark.asyncio
async def test_heartbeat_keeps_busy_without_event():
    uow = FakeUoW()
    await uow.presence.upsert(make_presence("player-1", PresenceStatus.BUSY))

    presence = await presence_service.heartbeat("player-1", uow)

    assert presence.status == PresenceStatus.BUSY
    assert uow.outbox.events(EventType.PRESENCE_UPDATED) == []


@pytest.mark.asyncio
async def test_connections_are_counted():
    uow = FakeUoW()

    await presence_service.connect("player-1", uow)
    await presence_service.connect("player-1", uow)
    after_one = await presence_service.disconnect("player-1", uow)
    after_two = await presence_service.disconnect("player-1", uow)

    assert after_one.status == PresenceStatus.ONLINE
    assert after_one.active_connections == 1
    assert after_two.status == PresenceStatus.OFFLINE
    assert after_two.active_connections == 0


@pytest.mark.asyncio
async def test_disconnect_never_goes_negative():
    presence = await presence_service.disconnect("player-1", FakeUoW())
    assert presence.active_connections == 0


@pytest.mark.asyncio
async def test_get_many_fills_unknown_users():
    uow = FakeUoW()
    await uow.presence.upsert(make_presence("player-1", PresenceStatus.ONLINE))

    result = await presence_service.get_many(["player-1", "ghost", "player-1"], uow)

    assert [(p.user_id, p.status) for p in result] == [
        ("player-1", PresenceStatus.ONLINE),
        ("ghost", PresenceStatus.OFFLINE),
    ]


@pytest.mark.asyncio
async def test_list_online_excludes_offline():
    uow = FakeUoW()
    for user_id, status in (
        ("a", PresenceStatus.ONLINE),
        ("b", PresenceStatus.BUSY),
        ("c", PresenceStatus.OFFLINE),
    ):
        await uow.presence.upsert(make_presence(user_id, status))

    online = await presence_service.list_online(uow)

    assert {p.user_id for p in online} == {"a", "b"}


@pytest.mark.asyncio
async def test_sweep_stale():
    uow = FakeUoW()
    now = datetime.now(timezone.utc)
    await uow.presence.upsert(make_presence("idle", PresenceStatus.ONLINE, idle=timedelta(minutes=6)))
    await uow.presence.upsert(make_presence("gone", PresenceStatus.BUSY, idle=timedelta(minutes=20)))
    await uow.presence.upsert(make_presence("busy", PresenceStatus.BUSY, idle=timedelta(minutes=6)))
    await uow.presence.upsert(make_presence("fresh", PresenceStatus.ONLINE))

    changed = await presence_service.sweep_stale(now, uow)

    assert changed == 2
    store = uow.presence._store
    assert store["idle"].status == PresenceStatus.AWAY
    assert store["gone"].status == PresenceStatus.OFFLINE
    assert store["gone"].active_connections == 0
    assert store["busy"].status == PresenceStatus.BUSY
    assert store["fresh"].status == PresenceStatus.ONLINE
    assert uow._committed is True


@pytest.mark.asyncio
async def test_communication_summary(player):
    uow = FakeUoW()
    conv = uow.seed_conversation(make_conversation(), "player-1", "player-2", admins=("coach-1",))
    uow.messages._messages.append(make_message(conversation_id=conv.id, sender_id="coach-1"))
    n = make_notification()
    uow.notifications._store[n.id] = n
    await uow.presence.upsert(make_presence("coach-1", PresenceStatus.ONLINE))
    await uow.presence.upsert(make_presence("player-2", PresenceStatus.AWAY))

    summary = await dashboard_service.get_communication_summary(player, uow)

    assert summary.unread_messages == 1
    assert summary.unread_notifications == 1
    assert summary.online_contacts == 1
    assert [v.conversation.id for v in summary.recent_conversations] == [conv.id]
    assert summary.recent_conversations[0].unread_count == 1
