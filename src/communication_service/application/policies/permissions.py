from __future__ import annotations

from communication_service.application.dto.principal import Principal
from communication_service.application.exceptions import ForbiddenError, NotFoundError
from communication_service.application.repositories.participant import ParticipantReader
from communication_service.domain.entities.conversation import Conversation
from communication_service.domain.entities.participant import Participant


async def assert_conversation_access(
    principal: Principal,
    conversation: Conversation | None,
    participants: ParticipantReader,
) -> Participant:
    """Raise if conversation doesn't exist or principal is not an active participant."""
    if conversation is None:
        raise NotFoundError("Conversation not found")

    participant = await participants.get(conversation.id, principal.user_id)
    if participant is None:
        raise ForbiddenError("You are not a participant in this conversation")

    return participant


async def assert_conversation_admin(
    principal: Principal,
    conversation: Conversation | None,
    participants: ParticipantReader,
) -> Participant:
    participant = await assert_conversation_access(principal, conversation, participants)
    if not participant.is_admin:
        raise ForbiddenError("Only conversation admins can perform this action")
    return participant


def assert_staff(principal: Principal) -> None:
    if not principal.is_staff:
        raise ForbiddenError("Staff access required")
