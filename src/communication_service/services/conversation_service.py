from __future__ import annotations

import dataclasses
import math
import uuid
from datetime import datetime, timezone

from communication_service.application.dto.conversation import (
    ConversationListParams,
    ConversationPage,
    ConversationView,
    CreateConversationDTO,
    UpdateConversationDTO,
)
from communication_service.application.dto.payloads import conversation_payload
from communication_service.application.dto.principal import Principal
from communication_service.application.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from communication_service.application.policies.permissions import (
    assert_conversation_access,
    assert_conversation_admin,
)
from communication_service.application.uow import UnitOfWork
from communication_service.domain.entities.conversation import Conversation
from communication_service.domain.entities.message import Message
from communication_service.domain.entities.participant import Participant
from communication_service.domain.events import EventType
from communication_service.domain.value_objects.enums import (
    ConversationType,
    MessageType,
    ParticipantRole,
)
from communication_service.services.events import emit


async def _load_view(
    conversation: Conversation,
    participant: Participant,
    uow: UnitOfWork,
) -> ConversationView:
    participants = await uow.participants.list_participants(conversation.id)
    last_message = await uow.messages.get_last_message(conversation.id)
    unread = await uow.messages.count_unread(
        conversation.id, participant.user_id, participant.last_read_at
    )
    return ConversationView(
        conversation=conversation,
        participants=participants,
        last_message=last_message,
        unread_count=unread,
    )


async def _system_message(
    conversation_id: uuid.UUID,
    text: str,
    created_by: str,
    uow: UnitOfWork,
) -> Message:
    now = datetime.now(timezone.utc)
    message = await uow.messages_w.create(
        Message(
            id=uuid.uuid4(),
            conversation_id=conversation_id,
            sender_id=created_by,
            type=MessageType.SYSTEM,
            content=text,
            created_at=now,
        )
    )
    await uow.conversations_w.touch_last_message_at(conversation_id, now)
    return message


async def create_conversation(
    dto: CreateConversationDTO,
    principal: Principal,
    uow: UnitOfWork,
) -> ConversationView:
    requested = list(dict.fromkeys(dto.participant_ids))
    if dto.type == ConversationType.DIRECT:
        if len(requested) != 2:
            raise ValidationError("Direct conversations must have exactly 2 participants")
        if principal.user_id not in requested:
            raise ForbiddenError("You must be a participant of a direct conversation you create")
        existing = await uow.conversations.find_direct_between(requested[0], requested[1])
        if existing is not None:
            raise ConflictError("Direct conversation already exists")
    elif len(requested) < 2:
        raise ValidationError("Group conversations must have at least 2 participants")

    member_ids = list(dict.fromkeys([*requested, principal.user_id]))

    now = datetime.now(timezone.utc)
    conversation = await uow.conversations_w.create(
        Conversation(
            id=uuid.uuid4(),
            type=dto.type,
            name=dto.name,
            description=dto.description,
            avatar_url=dto.avatar_url,
            created_by=principal.user_id,
            created_at=now,
            updated_at=now,
            metadata=dict(dto.metadata),
        )
    )

    participants = [
        Participant(
            conversation_id=conversation.id,
            user_id=uid,
            role=ParticipantRole.ADMIN if uid == principal.user_id else ParticipantRole.MEMBER,
            joined_at=now,
        )
        for uid in member_ids
    ]
    await uow.participants_w.add_many(participants)

    if dto.type != ConversationType.DIRECT:
        text = (
            f"User {principal.user_id} created the channel"
            if dto.type == ConversationType.CHANNEL
            else f"Conversation created by user {principal.user_id}"
        )
        await _system_message(conversation.id, text, principal.user_id, uow)

    await emit(
        uow,
        EventType.CONVERSATION_CREATED,
        conversation_payload(conversation, participants),
        user_ids=member_ids,
    )
    await uow.commit()

    creator = next(p for p in participants if p.user_id == principal.user_id)
    return await _load_view(conversation, creator, uow)


async def get_conversation(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> ConversationView:
    conversation = await uow.conversations.get_by_id(conversation_id)
    participant = await assert_conversation_access(principal, conversation, uow.participants)
    assert conversation is not None
    return await _load_view(conversation, participant, uow)


async def list_conversations(
    params: ConversationListParams,
    principal: Principal,
    uow: UnitOfWork,
) -> ConversationPage:
    page = max(1, params.page)
    limit = max(1, params.limit)
    total = await uow.conversations.count_for_user(
        principal.user_id, type=params.type, include_archived=params.include_archived
    )
    conversations = await uow.conversations.list_for_user(
        principal.user_id,
        type=params.type,
        include_archived=params.include_archived,
        offset=(page - 1) * limit,
        limit=limit,
    )

    items: list[ConversationView] = []
    for conversation in conversations:
        participant = await uow.participants.get(conversation.id, principal.user_id)
        if participant is None:
            continue
        items.append(await _load_view(conversation, participant, uow))

    return ConversationPage(
        items=items,
        total=total,
        page=page,
        total_pages=math.ceil(total / limit),
    )


async def update_conversation(
    conversation_id: uuid.UUID,
    dto: UpdateConversationDTO,
    principal: Principal,
    uow: UnitOfWork,
) -> ConversationView:
    conversation = await uow.conversations.get_by_id(conversation_id)
    participant = await assert_conversation_admin(principal, conversation, uow.participants)
    assert conversation is not None
    if conversation.type == ConversationType.DIRECT:
        raise ConflictError("Cannot update direct conversations")

    changes = {
        key: value
        for key, value in (
            ("name", dto.name),
            ("description", dto.description),
            ("avatar_url", dto.avatar_url),
            ("metadata", dto.metadata),
        )
        if value is not None
    }
    now = datetime.now(timezone.utc)
    updated = dataclasses.replace(conversation, **changes, updated_at=now)
    await uow.conversations_w.update(conversation_id, {**changes, "updated_at": now})
    await emit(
        uow,
        EventType.CONVERSATION_UPDATED,
        conversation_payload(updated),
        conversation_ids=[conversation_id],
    )
    await uow.commit()
    return await _load_view(updated, participant, uow)


async def delete_conversation(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> None:
    conversation = await uow.conversations.get_by_id(conversation_id)
    await assert_conversation_admin(principal, conversation, uow.participants)
    await uow.conversations_w.soft_delete(conversation_id, datetime.now(timezone.utc))
    await uow.commit()


async def archive_conversation(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> None:
    conversation = await uow.conversations.get_by_id(conversation_id)
    await assert_conversation_access(principal, conversation, uow.participants)
    await uow.participants_w.update(
        conversation_id, principal.user_id, {"archived_at": datetime.now(timezone.utc)}
    )
    await uow.commit()


async def unarchive_conversation(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> None:
    conversation = await uow.conversations.get_by_id(conversation_id)
    await assert_conversation_access(principal, conversation, uow.participants)
    await uow.participants_w.update(conversation_id, principal.user_id, {"archived_at": None})
    await uow.commit()


async def add_participants(
    conversation_id: uuid.UUID,
    user_ids: list[str],
    principal: Principal,
    uow: UnitOfWork,
) -> list[Participant]:
    conversation = await uow.conversations.get_by_id(conversation_id)
    await assert_conversation_access(principal, conversation, uow.participants)
    assert conversation is not None
    if conversation.type == ConversationType.DIRECT:
        raise ConflictError("Cannot add participants to direct conversations")
    await assert_conversation_admin(principal, conversation, uow.participants)

    wanted = list(dict.fromkeys(user_ids))
    if not wanted:
        raise ValidationError("No participants given")

    now = datetime.now(timezone.utc)
    rejoining: list[str] = []
    for uid in wanted:
        existing = await uow.participants.get(conversation_id, uid, active_only=False)
        if existing is None:
            continue
        if existing.is_active:
            raise ConflictError("User is already in the conversation")
        rejoining.append(uid)

    for uid in rejoining:
        await uow.participants_w.update(
            conversation_id,
            uid,
            {
                "left_at": None,
                "joined_at": now,
                "role": ParticipantRole.MEMBER,
                "archived_at": None,
                "last_read_at": None,
            },
        )
    new_participants = [
        Participant(
            conversation_id=conversation_id,
            user_id=uid,
            role=ParticipantRole.MEMBER,
            joined_at=now,
        )
        for uid in wanted
        if uid not in rejoining
    ]
    if new_participants:
        await uow.participants_w.add_many(new_participants)

    await _system_message(
        conversation_id,
        f"{len(wanted)} participant(s) added by user {principal.user_id}",
        principal.user_id,
        uow,
    )
    await uow.conversations_w.update(conversation_id, {"updated_at": now})

    participants = await uow.participants.list_participants(conversation_id)
    await emit(
        uow,
        EventType.CONVERSATION_UPDATED,
        conversation_payload(conversation, participants),
        conversation_ids=[conversation_id],
        user_ids=wanted,
    )
    await uow.commit()
    return participants


async def remove_participant(
    conversation_id: uuid.UUID,
    user_id: str,
    principal: Principal,
    uow: UnitOfWork,
) -> None:
    conversation = await uow.conversations.get_by_id(conversation_id)
    await assert_conversation_access(principal, conversation, uow.participants)
    assert conversation is not None
    if user_id != principal.user_id:
        await assert_conversation_admin(principal, conversation, uow.participants)

    target = await uow.participants.get(conversation_id, user_id)
    if target is None:
        raise NotFoundError("Participant not found in conversation")

    now = datetime.now(timezone.utc)
    await uow.participants_w.mark_left(conversation_id, user_id, now)

    remaining = [
        p
        for p in await uow.participants.list_participants(conversation_id)
        if p.user_id != user_id
    ]
    if not remaining:
        await uow.conversations_w.soft_delete(conversation_id, now)
        await uow.commit()
        return

    if not any(p.is_admin for p in remaining):
        earliest = min(remaining, key=lambda p: p.joined_at)
        await uow.participants_w.update(
            conversation_id, earliest.user_id, {"role": ParticipantRole.ADMIN}
        )

    text = (
        f"User {user_id} left the conversation"
        if user_id == principal.user_id
        else f"User {user_id} was removed by user {principal.user_id}"
    )
    await _system_message(conversation_id, text, principal.user_id, uow)
    await uow.conversations_w.update(conversation_id, {"updated_at": now})
    await emit(
        uow,
        EventType.CONVERSATION_UPDATED,
        conversation_payload(conversation) | {"removed_user_id": user_id},
        conversation_ids=[conversation_id],
        user_ids=[user_id],
    )
    await uow.commit()


async def mark_conversation_read(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> None:
    conversation = await uow.conversations.get_by_id(conversation_id)
    await assert_conversation_access(principal, conversation, uow.participants)
    await uow.participants_w.update(
        conversation_id, principal.user_id, {"last_read_at": datetime.now(timezone.utc)}
    )
    await uow.commit()


async def mute_conversation(
    conversation_id: uuid.UUID,
    until: datetime | None,
    principal: Principal,
    uow: UnitOfWork,
) -> None:
    conversation = await uow.conversations.get_by_id(conversation_id)
    await assert_conversation_access(principal, conversation, uow.participants)
    await uow.participants_w.update(
        conversation_id, principal.user_id, {"is_muted": True, "muted_until": until}
    )
    await uow.commit()


async def unmute_conversation(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> None:
    conversation = await uow.conversations.get_by_id(conversation_id)
    await assert_conversation_access(principal, conversation, uow.participants)
    await uow.participants_w.update(
        conversation_id, principal.user_id, {"is_muted": False, "muted_until": None}
    )
    await uow.commit()
