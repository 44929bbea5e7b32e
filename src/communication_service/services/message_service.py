from __future__ import annotations

import dataclasses
import math
import uuid
from datetime import datetime, timedelta, timezone

from communication_service.application.dto.message import (
    MessageListParams,
    MessagePage,
    MessageSearchParams,
    MessageView,
    SendMessageDTO,
)
from communication_service.application.dto.payloads import message_payload
from communication_service.application.dto.principal import Principal
from communication_service.application.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from communication_service.application.policies.permissions import assert_conversation_access
from communication_service.application.uow import UnitOfWork
from communication_service.config import settings
from communication_service.domain.entities.message import (
    Message,
    MessageAttachment,
    MessageReaction,
    MessageReadReceipt,
)
from communication_service.domain.events import EventType
from communication_service.domain.value_objects.enums import AttachmentType, MessageType
from communication_service.services.events import emit

_VARIATION_SELECTORS = {"\ufe0e", "\ufe0f"}


def normalize_emoji(raw: str) -> str:
    """Strip text/emoji presentation selectors so both forms compare equal."""
    return "".join(c for c in raw if c not in _VARIATION_SELECTORS)


def attachment_type_for(mime_type: str) -> AttachmentType:
    if mime_type.startswith("image/"):
        return AttachmentType.IMAGE
    if mime_type.startswith("video/"):
        return AttachmentType.VIDEO
    if mime_type.startswith("audio/"):
        return AttachmentType.AUDIO
    if (
        mime_type == "application/pdf"
        or mime_type.startswith("application/msword")
        or mime_type.startswith("application/vnd.")
    ):
        return AttachmentType.DOCUMENT
    return AttachmentType.OTHER


async def _to_views(
    messages: list[Message], user_id: str, uow: UnitOfWork
) -> list[MessageView]:
    ids = [m.id for m in messages]
    read_ids = await uow.receipts.read_message_ids(user_id, ids)
    reactions = await uow.reactions.counts_for_messages(ids)
    return [
        MessageView(
            message=m,
            is_read=m.sender_id == user_id or m.id in read_ids,
            reaction_counts=reactions.get(m.id, {}),
        )
        for m in messages
    ]


async def send_message(
    dto: SendMessageDTO,
    principal: Principal,
    uow: UnitOfWork,
) -> Message:
    conversation = await uow.conversations.get_by_id(dto.conversation_id)
    await assert_conversation_access(principal, conversation, uow.participants)

    content = dto.content or ""
    if not content.strip() and not dto.attachments:
        raise ValidationError("Message must have content or attachments")
    if len(content) > settings.MESSAGE_MAX_LENGTH:
        raise ValidationError("Message content is too long")

    if dto.reply_to_id is not None:
        reply_to = await uow.messages.get_by_id(dto.reply_to_id)
        if reply_to is None or reply_to.conversation_id != dto.conversation_id:
            raise NotFoundError("Reply message not found")

    message_id = uuid.uuid4()
    metadata = dict(dto.metadata)
    if dto.mentions:
        metadata["mentions"] = list(dict.fromkeys(dto.mentions))

    now = datetime.now(timezone.utc)
    msg = Message(
        id=message_id,
        conversation_id=dto.conversation_id,
        sender_id=principal.user_id,
        type=dto.type,
        content=dto.content,
        created_at=now,
        reply_to_id=dto.reply_to_id,
        metadata=metadata,
        attachments=[
            MessageAttachment(
                id=uuid.uuid4(),
                message_id=message_id,
                url=a.url,
                file_name=a.file_name,
                file_type=a.file_type,
                file_size=a.file_size,
                type=attachment_type_for(a.file_type),
                thumbnail_url=a.thumbnail_url,
                width=a.width,
                height=a.height,
                duration=a.duration,
            )
            for a in dto.attachments
        ],
    )
    msg = await uow.messages_w.create(msg)
    await uow.conversations_w.touch_last_message_at(dto.conversation_id, msg.created_at)
    await emit(
        uow,
        EventType.MESSAGE_NEW,
        message_payload(msg),
        conversation_ids=[dto.conversation_id],
    )
    await uow.commit()
    return msg


async def list_messages(
    conversation_id: uuid.UUID,
    params: MessageListParams,
    principal: Principal,
    uow: UnitOfWork,
) -> MessagePage:
    """Return a page of messages ordered oldest to newest."""
    conversation = await uow.conversations.get_by_id(conversation_id)
    await assert_conversation_access(principal, conversation, uow.participants)

    limit = max(1, params.limit)
    page = max(1, params.page)

    anchor_id = params.before_id or params.after_id
    anchor = (
        await uow.messages.get_by_id(anchor_id, include_deleted=True)
        if anchor_id is not None
        else None
    )
    if anchor is not None and anchor.conversation_id != conversation_id:
        anchor = None

    if anchor is not None and params.before_id is not None:
        newest_first = await uow.messages.list_messages(
            conversation_id, before=anchor.created_at, limit=limit
        )
        messages = list(reversed(newest_first))
        total, page, total_pages = len(messages), 1, 1
    elif anchor is not None:
        messages = await uow.messages.list_messages(
            conversation_id, after=anchor.created_at, limit=limit
        )
        total, page, total_pages = len(messages), 1, 1
    else:
        newest_first = await uow.messages.list_messages(
            conversation_id,
            search=params.search,
            offset=(page - 1) * limit,
            limit=limit,
        )
        messages = list(reversed(newest_first))
        total = await uow.messages.count_messages(conversation_id, search=params.search)
        total_pages = max(1, math.ceil(total / limit))

    return MessagePage(
        items=await _to_views(messages, principal.user_id, uow),
        total=total,
        page=page,
        total_pages=total_pages,
    )


async def edit_message(
    message_id: uuid.UUID,
    content: str,
    principal: Principal,
    uow: UnitOfWork,
) -> Message:
    message = await uow.messages.get_by_id(message_id)
    if message is None:
        raise NotFoundError("Message not found")
    if message.sender_id != principal.user_id:
        raise ForbiddenError("You can only edit your own messages")
    if message.type == MessageType.SYSTEM:
        raise ForbiddenError("System messages cannot be edited")

    now = datetime.now(timezone.utc)
    if now - message.created_at > timedelta(seconds=settings.MESSAGE_EDIT_WINDOW_SECONDS):
        raise ForbiddenError("Message can no longer be edited")
    if not content.strip():
        raise ValidationError("Message content cannot be empty")
    if len(content) > settings.MESSAGE_MAX_LENGTH:
        raise ValidationError("Message content is too long")

    history = list(message.metadata.get("edit_history", []))
    history.append(
        {
            "content": message.content,
            "edited_at": (message.edited_at or message.created_at).isoformat(),
        }
    )
    metadata = {**message.metadata, "edit_history": history}
    await uow.messages_w.update_content(message_id, content, metadata, now)

    updated = dataclasses.replace(
        message, content=content, metadata=metadata, edited_at=now
    )
    await emit(
        uow,
        EventType.MESSAGE_UPDATED,
        message_payload(updated),
        conversation_ids=[message.conversation_id],
    )
    await uow.commit()
    return updated


async def delete_message(
    message_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> None:
    message = await uow.messages.get_by_id(message_id)
    if message is None:
        raise NotFoundError("Message not found")

    if message.sender_id != principal.user_id:
        participant = await uow.participants.get(message.conversation_id, principal.user_id)
        if participant is None or not participant.is_admin:
            raise ForbiddenError("You can only delete your own messages")

    await uow.messages_w.soft_delete(message_id, principal.user_id, datetime.now(timezone.utc))
    await emit(
        uow,
        EventType.MESSAGE_DELETED,
        {
            "message_id": str(message_id),
            "conversation_id": str(message.conversation_id),
            "deleted_by": principal.user_id,
        },
        conversation_ids=[message.conversation_id],
    )
    await uow.commit()


async def _reactable_message(
    message_id: uuid.UUID, principal: Principal, uow: UnitOfWork
) -> Message:
    message = await uow.messages.get_by_id(message_id)
    if message is None:
        raise NotFoundError("Message not found")
    conversation = await uow.conversations.get_by_id(message.conversation_id)
    await assert_conversation_access(principal, conversation, uow.participants)
    return message


async def add_reaction(
    message_id: uuid.UUID,
    emoji: str,
    principal: Principal,
    uow: UnitOfWork,
) -> MessageReaction:
    message = await _reactable_message(message_id, principal, uow)
    normalized = normalize_emoji(emoji).strip()
    if not normalized:
        raise ValidationError("Invalid emoji")

    existing = await uow.reactions.list_for_user(message_id, principal.user_id)
    if any(normalize_emoji(r.emoji) == normalized for r in existing):
        raise ConflictError("You already reacted with this emoji")

    reaction = MessageReaction(
        message_id=message_id,
        user_id=principal.user_id,
        emoji=normalized,
        created_at=datetime.now(timezone.utc),
    )
    await uow.reactions.add(reaction)
    counts = await uow.reactions.counts_for_messages([message_id])
    await emit(
        uow,
        EventType.MESSAGE_UPDATED,
        {
            "message_id": str(message_id),
            "conversation_id": str(message.conversation_id),
            "reaction_counts": counts.get(message_id, {}),
        },
        conversation_ids=[message.conversation_id],
    )
    await uow.commit()
    return reaction


async def remove_reaction(
    message_id: uuid.UUID,
    emoji: str,
    principal: Principal,
    uow: UnitOfWork,
) -> None:
    message = await _reactable_message(message_id, principal, uow)
    normalized = normalize_emoji(emoji).strip()

    existing = await uow.reactions.list_for_user(message_id, principal.user_id)
    match = next((r for r in existing if normalize_emoji(r.emoji) == normalized), None)
    if match is None:
        raise NotFoundError("Reaction not found")

    await uow.reactions.remove(message_id, principal.user_id, match.emoji)
    counts = await uow.reactions.counts_for_messages([message_id])
    await emit(
        uow,
        EventType.MESSAGE_UPDATED,
        {
            "message_id": str(message_id),
            "conversation_id": str(message.conversation_id),
            "reaction_counts": counts.get(message_id, {}),
        },
        conversation_ids=[message.conversation_id],
    )
    await uow.commit()


async def mark_messages_read(
    message_ids: list[uuid.UUID],
    principal: Principal,
    uow: UnitOfWork,
) -> int:
    """Create read receipts and advance ``last_read_at``. Returns receipts written."""
    if not message_ids:
        return 0
    messages = await uow.messages.get_many(list(dict.fromkeys(message_ids)))
    if not messages:
        return 0

    conversation_ids = list(dict.fromkeys(m.conversation_id for m in messages))
    for cid in conversation_ids:
        if not await uow.participants.is_participant(cid, principal.user_id):
            raise ForbiddenError("You are not a participant in this conversation")

    others = [m for m in messages if m.sender_id != principal.user_id]
    already = await uow.receipts.read_message_ids(principal.user_id, [m.id for m in others])
    now = datetime.now(timezone.utc)
    receipts = [
        MessageReadReceipt(message_id=m.id, user_id=principal.user_id, read_at=now)
        for m in others
        if m.id not in already
    ]
    await uow.receipts.add_many(receipts)

    for cid in conversation_ids:
        await uow.participants_w.update(cid, principal.user_id, {"last_read_at": now})
        read_here = [str(r.message_id) for r in receipts if _conversation_of(messages, r) == cid]
        if read_here:
            await emit(
                uow,
                EventType.MESSAGE_READ,
                {
                    "conversation_id": str(cid),
                    "user_id": principal.user_id,
                    "message_ids": read_here,
                    "read_at": now.isoformat(),
                },
                conversation_ids=[cid],
            )
    await uow.commit()
    return len(receipts)


def _conversation_of(messages: list[Message], receipt: MessageReadReceipt) -> uuid.UUID:
    return next(m.conversation_id for m in messages if m.id == receipt.message_id)


async def search_messages(
    params: MessageSearchParams,
    principal: Principal,
    uow: UnitOfWork,
) -> list[Message]:
    if not params.query.strip():
        raise ValidationError("Search query is required")
    memberships = await uow.participants.list_for_user(principal.user_id)
    allowed = [p.conversation_id for p in memberships]
    if params.conversation_id is not None:
        allowed = [cid for cid in allowed if cid == params.conversation_id]
    return await uow.messages.search(allowed, params)


async def get_unread_count(principal: Principal, uow: UnitOfWork) -> int:
    total = 0
    for participant in await uow.participants.list_for_user(principal.user_id):
        total += await uow.messages.count_unread(
            participant.conversation_id, principal.user_id, participant.last_read_at
        )
    return total
