"""In-process WebSocket connection manager."""
from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from fastapi import WebSocket

from communication_service.domain.events import EventType
from communication_service.infrastructure.ws.protocol import WsOutbound

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks WebSocket connections per principal and conversation subscriptions."""

    def __init__(self) -> None:
        self._connections: dict[str, set[WebSocket]] = {}
        self._subscriptions: dict[UUID, set[str]] = {}

    async def connect(self, ws: WebSocket, principal_key: str) -> None:
        await ws.accept()
        self._connections.setdefault(principal_key, set()).add(ws)
        logger.debug("WS connected: %s (total=%d)", principal_key, len(self._connections))

    def disconnect(self, ws: WebSocket, principal_key: str) -> None:
        conns = self._connections.get(principal_key)
        if conns:
            conns.discard(ws)
            if not conns:
                del self._connections[principal_key]
        if principal_key not in self._connections:
            for subs in self._subscriptions.values():
                subs.discard(principal_key)
        logger.debug("WS disconnected: %s", principal_key)

    def is_connected(self, principal_key: str) -> bool:
        return principal_key in self._connections

    def subscribe(self, principal_key: str, conversation_id: UUID) -> None:
        self._subscriptions.setdefault(conversation_id, set()).add(principal_key)

    def unsubscribe(self, principal_key: str, conversation_id: UUID) -> None:
        subs = self._subscriptions.get(conversation_id)
        if subs:
            subs.discard(principal_key)
            if not subs:
                del self._subscriptions[conversation_id]

    def subscribers(self, conversation_id: UUID) -> set[str]:
        return set(self._subscriptions.get(conversation_id, set()))

    async def _send_many(
        self,
        principal_keys: set[str],
        event_type: str,
        data: dict[str, Any],
    ) -> None:
        raw = WsOutbound(type=event_type, data=data).model_dump_json()
        dead: list[tuple[str, WebSocket]] = []
        for pkey in principal_keys:
            for ws in list(self._connections.get(pkey, set())):
                try:
                    await ws.send_text(raw)
                except Exception:
                    dead.append((pkey, ws))
        for pkey, ws in dead:
            self.disconnect(ws, pkey)

    async def dispatch(
        self,
        event_type: str,
        route: dict[str, Any],
        data: dict[str, Any],
    ) -> None:
        """Deliver a fanned-out event to local connections.

        A user routed a ``conversation:created`` event is subscribed to the new
        conversation first, so later events reach them without a rejoin.
        """
        conversation_ids = [UUID(c) for c in route.get("conversation_ids") or []]
        user_ids = [str(u) for u in route.get("user_ids") or []]

        if event_type == EventType.CONVERSATION_CREATED and data.get("conversation_id"):
            new_id = UUID(data["conversation_id"])
            for user_id in user_ids:
                if self.is_connected(user_id):
                    self.subscribe(user_id, new_id)

        recipients: set[str] = set(user_ids)
        for cid in conversation_ids:
            recipients |= self.subscribers(cid)
        await self._send_many(recipients, event_type, data)
