from __future__ import annotations

from typing import Any, Protocol, TypedDict


class Route(TypedDict, total=False):
    """Which local WebSocket connections receive a fanned-out event."""

    conversation_ids: list[str]
    user_ids: list[str]


class EventPublisher(Protocol):
    async def publish(
        self,
        channel: str,
        event_type: str,
        route: Route,
        data: dict[str, Any],
    ) -> None: ...
