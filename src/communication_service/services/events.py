from __future__ import annotations

from typing import Any, Iterable
from uuid import UUID

from communication_service.application.uow import UnitOfWork
from communication_service.domain.events import EventType


async def emit(
    uow: UnitOfWork,
    event_type: EventType,
    data: dict[str, Any],
    *,
    conversation_ids: Iterable[UUID] = (),
    user_ids: Iterable[str] = (),
) -> None:
    """Append a real-time event to the outbox, routed to conversations and/or users."""
    await uow.outbox.add(
        event_type.value,
        {
            "route": {
                "conversation_ids": [str(c) for c in conversation_ids],
                "user_ids": list(dict.fromkeys(user_ids)),
            },
            "data": data,
        },
    )
