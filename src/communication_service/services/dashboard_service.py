from __future__ import annotations

from dataclasses import dataclass

from communication_service.application.dto.conversation import ConversationView
from communication_service.application.dto.principal import Principal
from communication_service.application.uow import UnitOfWork
from communication_service.domain.value_objects.enums import PresenceStatus

RECENT_CONVERSATIONS = 5


@dataclass(frozen=True, slots=True)
class CommunicationSummary:
    unread_messages: int
    unread_notifications: int
    recent_conversations: list[ConversationView]
    online_contacts: int


async def get_communication_summary(
    principal: Principal, uow: UnitOfWork
) -> CommunicationSummary:
    memberships = {
        p.conversation_id: p for p in await uow.participants.list_for_user(principal.user_id)
    }

    unread_messages = 0
    contacts: set[str] = set()
    for conversation_id, participant in memberships.items():
        unread_messages += await uow.messages.count_unread(
            conversation_id, principal.user_id, participant.last_read_at
        )
        for other in await uow.participants.list_participants(conversation_id):
            if other.user_id != principal.user_id:
                contacts.add(other.user_id)

    recent: list[ConversationView] = []
    for conversation in await uow.conversations.list_for_user(
        principal.user_id, limit=RECENT_CONVERSATIONS
    ):
        participant = memberships.get(conversation.id)
        if participant is None:
            continue
        recent.append(
            ConversationView(
                conversation=conversation,
                participants=await uow.participants.list_participants(conversation.id),
                last_message=await uow.messages.get_last_message(conversation.id),
                unread_count=await uow.messages.count_unread(
                    conversation.id, principal.user_id, participant.last_read_at
                ),
            )
        )

    presences = await uow.presence.get_many(sorted(contacts)) if contacts else {}
    online = sum(1 for p in presences.values() if p.status == PresenceStatus.ONLINE)

    return CommunicationSummary(
        unread_messages=unread_messages,
        unread_notifications=await uow.notifications.count_unread(principal.user_id),
        recent_conversations=recent,
        online_contacts=online,
    )
