from __future__ import annotations

import uuid

import pytest

from communication_service.application.dto.conversation import (
    ConversationListParams,
    CreateConversationDTO,
    UpdateConversationDTO,
)
from communication_service.application.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from communication_service.domain.events import EventType
from communication_service.domain.value_objects.enums import (
    ConversationType,
    MessageType,
    ParticipantRole,
)
from communication_service.services import conversation_service
from tests.conftest import FakeUoW, make_conversation, make_message


@pytest.mark.asyncio
async def test_create_group_adds_creator_as_admin(coach):
    uow = FakeUoW()
    dto = CreateConversationDTO(
        type=ConversationType.GROUP,
        participant_ids=["player-1", "player-2"],
        name="Defense",
    )

    view = await conversation_service.create_conversation(dto, coach, uow)

    roles = {p.user_id: p.role for p in view.participants}
    assert roles == {
        "player-1": ParticipantRole.MEMBER,
        "player-2": ParticipantRole.MEMBER,
        "coach-1": ParticipantRole.ADMIN,
    }
    assert uow._committed is True
    assert view.last_message is not None
    assert view.last_message.type == MessageType.SYSTEM
    event = uow.outbox.events(EventType.CONVERSATION_CREATED)[0]
    assert set(event["route"]["user_ids"]) == {"player-1", "player-2", "coach-1"}


@pytest.mark.asyncio
async def test_create_channel_system_message_wording(coach):
    uow = FakeUoW()
    dto = CreateConversationDTO(
        type=ConversationType.CHANNEL, participant_ids=["player-1", "player-2"]
    )

    view = await conversation_service.create_conversation(dto, coach, uow)

    assert view.last_message.content == "User coach-1 created the channel"


@pytest.mark.asyncio
async def test_create_direct_has_no_system_message(player):
    uow = FakeUoW()
    dto = CreateConversationDTO(
        type=ConversationType.DIRECT, participant_ids=["player-1", "player-2"]
    )

    view = await conversation_service.create_conversation(dto, player, uow)

    assert view.participant_count == 2
    assert view.last_message is None
    assert uow.messages._messages == []


@pytest.mark.asyncio
async def test_create_direct_requires_two_participants(player):
    uow = FakeUoW()
    dto = CreateConversationDTO(
        type=ConversationType.DIRECT,
        participant_ids=["player-1", "player-2", "player-3"],
    )

    with pytest.raises(ValidationError):
        await conversation_service.create_conversation(dto, player, uow)
    assert uow._committed is False


@pytest.mark.asyncio
async def test_create_direct_rejects_duplicate_pair(player):
    uow = FakeUoW()
    existing = make_conversation(type=ConversationType.DIRECT, created_by="player-2")
    uow.seed_conversation(existing, "player-1", "player-2")
    dto = CreateConversationDTO(
        type=ConversationType.DIRECT, participant_ids=["player-1", "player-2"]
    )

    with pytest.raises(ConflictError):
        await conversation_service.create_conversation(dto, player, uow)


@pytest.mark.asyncio
async def test_create_group_requires_two_participants(coach):
    uow = FakeUoW()
    dto = CreateConversationDTO(type=ConversationType.GROUP, participant_ids=["player-1"])

    with pytest.raises(ValidationError):
        await conversation_service.create_conversation(dto, coach, uow)


@pytest.mark.asyncio
async def test_get_conversation_requires_participant(player):
    uow = FakeUoW()
    conv = uow.seed_conversation(make_conversation(), "coach-1", "player-2")

    with pytest.raises(ForbiddenError):
        await conversation_service.get_conversation(conv.id, player, uow)


@pytest.mark.asyncio
async def test_get_missing_conversation(player):
    with pytest.raises(NotFoundError):
        await conversation_service.get_conversation(uuid.uuid4(), player, FakeUoW())


@pytest.mark.asyncio
async def test_get_conversation_counts_unread_from_others(player):
    uow = FakeUoW()
    conv = uow.seed_conversation(make_conversation(), "player-1", "player-2")
    uow.messages._messages += [
        make_message(conversation_id=conv.id, sender_id="player-2"),
        make_message(conversation_id=conv.id, sender_id="player-2"),
        make_message(conversation_id=conv.id, sender_id="player-1"),
    ]

    view = await conversation_service.get_conversation(conv.id, player, uow)

    assert view.unread_count == 2


@pytest.mark.asyncio
async def test_list_conversations_hides_archived_by_default(player):
    uow = FakeUoW()
    kept = uow.seed_conversation(make_conversation(name="kept"), "player-1", "player-2")
    archived = uow.seed_conversation(make_conversation(name="old"), "player-1", "player-2")
    await conversation_service.archive_conversation(archived.id, player, uow)

    page = await conversation_service.list_conversations(ConversationListParams(), player, uow)
    with_archived = await conversation_service.list_conversations(
        ConversationListParams(include_archived=True), player, uow
    )

    assert [v.conversation.id for v in page.items] == [kept.id]
    assert page.total == 1
    assert page.total_pages == 1
    assert with_archived.total == 2


@pytest.mark.asyncio
async def test_update_requires_admin(player):
    uow = FakeUoW()
    conv = uow.seed_conversation(make_conversation(), "player-1", admins=("coach-1",))

    with pytest.raises(ForbiddenError):
        await conversation_service.update_conversation(
            conv.id, UpdateConversationDTO(name="x"), player, uow
        )


@pytest.mark.asyncio
async def test_update_direct_conversation_rejected(player):
    uow = FakeUoW()
    conv = uow.seed_conversation(
        make_conversation(type=ConversationType.DIRECT, name=None),
        "player-2",
        admins=("player-1",),
    )

    with pytest.raises(ConflictError):
        await conversation_service.update_conversation(
            conv.id, UpdateConversationDTO(name="x"), player, uow
        )


@pytest.mark.asyncio
async def test_update_changes_name_and_emits(coach):
    uow = FakeUoW()
    conv = uow.seed_conversation(make_conversation(), "player-1", admins=("coach-1",))

    view = await conversation_service.update_conversation(
        conv.id, UpdateConversationDTO(name="Forwards"), coach, uow
    )

    assert view.conversation.name == "Forwards"
    assert uow.conversations._store[conv.id].name == "Forwards"
    event = uow.outbox.events(EventType.CONVERSATION_UPDATED)[0]
    assert event["route"]["conversation_ids"] == [str(conv.id)]


@pytest.mark.asyncio
async def test_add_participants_to_direct_rejected(player):
    uow = FakeUoW()
    conv = uow.seed_conversation(
        make_conversation(type=ConversationType.DIRECT), "player-2", admins=("player-1",)
    )

    with pytest.raises(ConflictError):
        await conversation_service.add_participants(conv.id, ["player-3"], player, uow)


@pytest.mark.asyncio
async def test_add_existing_participant_conflicts(coach):
    uow = FakeUoW()
    conv = uow.seed_conversation(make_conversation(), "player-1", admins=("coach-1",))

    with pytest.raises(ConflictError):
        await conversation_service.add_participants(conv.id, ["player-1"], coach, uow)


@pytest.mark.asyncio
async def test_readding_left_participant_reactivates(coach, player):
    uow = FakeUoW()
    conv = uow.seed_conversation(
        make_conversation(), "player-1", "player-2", admins=("coach-1",)
    )
    await conversation_service.remove_participant(conv.id, "player-1", player, uow)
    assert not await uow.participants.is_participant(conv.id, "player-1")

    participants = await conversation_service.add_participants(
        conv.id, ["player-1"], coach, uow
    )

    assert "player-1" in {p.user_id for p in participants}
    rows = [p for p in uow.participants._participants if p.user_id == "player-1"]
    assert len(rows) == 1


@pytest.mark.asyncio
async def test_member_cannot_remove_others(player):
    uow = FakeUoW()
    conv = uow.seed_conversation(
        make_conversation(), "player-1", "player-2", admins=("coach-1",)
    )

    with pytest.raises(ForbiddenError):
        await conversation_service.remove_participant(conv.id, "player-2", player, uow)


@pytest.mark.asyncio
async def test_last_admin_leaving_promotes_earliest_member(coach):
    uow = FakeUoW()
    conv = uow.seed_conversation(
        make_conversation(), "player-1", "player-2", admins=("coach-1",)
    )

    await conversation_service.remove_participant(conv.id, "coach-1", coach, uow)

    promoted = await uow.participants.get(conv.id, "player-1")
    assert promoted.role == ParticipantRole.ADMIN
    assert (await uow.participants.get(conv.id, "player-2")).role == ParticipantRole.MEMBER
    assert uow.messages._messages[-1].content == "User coach-1 left the conversation"


@pytest.mark.asyncio
async def test_last_participant_leaving_deletes_conversation(coach):
    uow = FakeUoW()
    conv = uow.seed_conversation(make_conversation(), admins=("coach-1",))

    await conversation_service.remove_participant(conv.id, "coach-1", coach, uow)

    assert await uow.conversations.get_by_id(conv.id) is None


@pytest.mark.asyncio
async def test_delete_conversation_requires_admin(player, coach):
    uow = FakeUoW()
    conv = uow.seed_conversation(make_conversation(), "player-1", admins=("coach-1",))

    with pytest.raises(ForbiddenError):
        await conversation_service.delete_conversation(conv.id, player, uow)

    await conversation_service.delete_conversation(conv.id, coach, uow)
    assert await uow.conversations.get_by_id(conv.id) is None


@pytest.mark.asyncio
async def test_mark_read_resets_unread(player):
    uow = FakeUoW()
    conv = uow.seed_conversation(make_conversation(), "player-1", "player-2")
    uow.messages._messages.append(make_message(conversation_id=conv.id, sender_id="player-2"))

    await conversation_service.mark_conversation_read(conv.id, player, uow)
    view = await conversation_service.get_conversation(conv.id, player, uow)

    assert view.unread_count == 0


@pytest.mark.asyncio
async def test_mute_and_unmute(player):
    uow = FakeUoW()
    conv = uow.seed_conversation(make_conversation(), "player-1", "player-2")

    await conversation_service.mute_conversation(conv.id, None, player, uow)
    assert (await uow.participants.get(conv.id, "player-1")).is_muted is True

    await conversation_service.unmute_conversation(conv.id, player, uow)
    assert (await uow.participants.get(conv.id, "player-1")).is_muted is False
