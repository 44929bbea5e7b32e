"""Seed development data: a team conversation, a few messages, templates and a notification."""
from __future__ import annotations

import asyncio
import logging
import uuid

from sqlalchemy.dialects.postgresql import insert as pg_insert

from communication_service.application.dto.conversation import CreateConversationDTO
from communication_service.application.dto.message import SendMessageDTO
from communication_service.application.dto.notification import CreateNotificationDTO
from communication_service.application.dto.principal import Principal
from communication_service.domain.value_objects.enums import (
    ConversationType,
    NotificationChannel,
    NotificationType,
)
from communication_service.infrastructure.db.models.notification import NotificationTemplateModel
from communication_service.infrastructure.db.session import AsyncSessionLocal, open_uow
from communication_service.log import setup_logging
from communication_service.services import (
    conversation_service,
    message_service,
    notification_service,
)

logger = logging.getLogger(__name__)

COACH = Principal(user_id="coach-1", roles=["coach"], team_ids=["team-1"])
PLAYERS = [
    Principal(user_id="player-1", roles=["player"], team_ids=["team-1"]),
    Principal(user_id="player-2", roles=["player"], team_ids=["team-1"]),
]

TEMPLATES = [
    (
        NotificationType.TRAINING_REMINDER,
        NotificationChannel.IN_APP,
        "Training: ${title}",
        "${message} Starts at ${start_time}.",
    ),
    (
        NotificationType.TEAM_ANNOUNCEMENT,
        NotificationChannel.IN_APP,
        None,
        "${message}",
    ),
]


async def _seed_templates() -> None:
    async with AsyncSessionLocal() as session:
        for type_, channel, subject, body in TEMPLATES:
            await session.execute(
                pg_insert(NotificationTemplateModel)
                .values(
                    id=uuid.uuid4(),
                    type=type_,
                    channel=channel,
                    subject_template=subject,
                    body_template=body,
                    is_active=True,
                )
                .on_conflict_do_nothing()
            )
        await session.commit()


async def seed() -> None:
    await _seed_templates()

    async with open_uow() as uow:
        view = await conversation_service.create_conversation(
            CreateConversationDTO(
                type=ConversationType.TEAM,
                participant_ids=[p.user_id for p in PLAYERS],
                name="Team 1",
                description="Team-wide chat",
            ),
            COACH,
            uow,
        )
    conv_id = view.conversation.id

    messages_data = [
        (COACH, "Practice moved to 6pm tomorrow."),
        (PLAYERS[0], "Got it, thanks!"),
        (PLAYERS[1], "Will the gym be open before?"),
        (COACH, "Yes, from 5pm."),
    ]
    for author, content in messages_data:
        async with open_uow() as uow:
            await message_service.send_message(
                SendMessageDTO(conversation_id=conv_id, content=content), author, uow,
            )

    async with open_uow() as uow:
        await notification_service.create_notification(
            CreateNotificationDTO(
                recipient_ids=[p.user_id for p in PLAYERS],
                type=NotificationType.TRAINING_REMINDER,
                title="Evening practice",
                message="Bring both jerseys.",
                template_variables={"start_time": "18:00"},
            ),
            COACH,
            uow,
        )

    logger.info("Seeded conversation %s with %d messages", conv_id, len(messages_data))


def main() -> None:
    setup_logging()
    asyncio.run(seed())


if __name__ == "__main__":
    main()
