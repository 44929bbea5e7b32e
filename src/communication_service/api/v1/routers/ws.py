from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable
from uuid import UUID

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError
from redis.exceptions import RedisError

from communication_service.api.deps import get_verifier
from communication_service.application.dto.message import SendMessageDTO
from communication_service.application.dto.principal import Principal
from communication_service.application.exceptions import AppError
from communication_service.config import settings
from communication_service.domain.events import EventType
from communication_service.infrastructure.bus.redis_pubsub import RedisPubSubPublisher
from communication_service.infrastructure.cache.redis_cache import RedisCache
from communication_service.infrastructure.cache.typing_indicators import TypingTracker
from communication_service.infrastructure.db.session import open_uow
from communication_service.infrastructure.ws.manager import ConnectionManager
from communication_service.infrastructure.ws.protocol import (
    ConversationRef,
    WsInbound,
    WsMarkRead,
    WsOutbound,
    WsPresenceUpdate,
    WsSendMessage,
)
from communication_service.services import message_service, presence_service

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

manager = ConnectionManager()


def get_manager() -> ConnectionManager:
    return manager


async def _authenticate(token: str) -> Principal | None:
    try:
        verifier = get_verifier()
        return await verifier.verify(token)
    except Exception:
        logger.debug("WS auth failed", exc_info=True)
        return None


async def _send(ws: WebSocket, event_type: str, data: dict[str, Any]) -> None:
    await ws.send_text(WsOutbound(type=event_type, data=data).model_dump_json())


async def _error(ws: WebSocket, code: str, detail: str = "") -> None:
    await _send(ws, "error", {"code": code, "message": detail})


# inbound events that count as user activity
ACTIVITY_TYPES = frozenset(
    {"ping", "message:send", "message:read", EventType.TYPING_START, EventType.TYPING_STOP}
)


class PresenceKeepAlive:
    """Refreshes one connection's presence on activity, at most once per interval."""

    def __init__(
        self,
        user_id: str,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._user_id = user_id
        self._interval = interval
        self._clock = clock
        self._last = clock()

    async def touch(self, cache: RedisCache | None) -> bool:
        now = self._clock()
        if now - self._last < self._interval:
            return False
        self._last = now
        try:
            async with open_uow(cache) as uow:
                await presence_service.heartbeat(self._user_id, uow)
        except Exception:
            logger.warning("Presence refresh failed for %s", self._user_id, exc_info=True)
        return True


@router.websocket("/ws")
async def ws_endpoint(
    websocket: WebSocket,
    token: str = Query(...),
) -> None:
    principal = await _authenticate(token)
    if principal is None:
        await websocket.close(code=4001, reason="Authentication failed")
        return

    pkey = principal.principal_key
    await manager.connect(websocket, pkey)
    cache = getattr(websocket.app.state, "cache", None)

    try:
        async with open_uow(cache) as uow:
            for membership in await uow.participants.list_for_user(principal.user_id):
                manager.subscribe(pkey, membership.conversation_id)
            await presence_service.connect(principal.user_id, uow)
    except Exception:
        logger.exception("WS setup failed for %s", pkey)

    heartbeat_task = asyncio.create_task(
        _heartbeat(websocket), name=f"ws-heartbeat-{pkey}",
    )
    try:
        keepalive = PresenceKeepAlive(principal.user_id, settings.WS_HEARTBEAT_SECONDS)
        await _read_loop(websocket, principal, keepalive)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for %s", pkey)
    finally:
        heartbeat_task.cancel()
        manager.disconnect(websocket, pkey)
        try:
            async with open_uow(cache) as uow:
                await presence_service.disconnect(principal.user_id, uow)
        except Exception:
            logger.exception("Failed to record disconnect for %s", pkey)


async def _heartbeat(ws: WebSocket) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    try:
        while True:
            await asyncio.sleep(interval)
            await _send(ws, "pong", {})
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.debug("WS heartbeat stopped", exc_info=True)


async def _read_loop(ws: WebSocket, principal: Principal, keepalive: PresenceKeepAlive) -> None:
    cache = getattr(ws.app.state, "cache", None)
    while True:
        raw = await ws.receive_text()
        try:
            msg = WsInbound.model_validate_json(raw)
        except PydanticValidationError:
            await _error(ws, "invalid_payload")
            continue

        if msg.type in ACTIVITY_TYPES:
            await keepalive.touch(cache)

        try:
            await _dispatch(ws, principal, msg)
        except PydanticValidationError as exc:
            await _error(ws, "invalid_data", str(exc))
        except AppError as exc:
            await _error(ws, exc.code, exc.detail)


async def _dispatch(ws: WebSocket, principal: Principal, msg: WsInbound) -> None:
    pkey = principal.principal_key
    cache = getattr(ws.app.state, "cache", None)

    if msg.type == "ping":
        await _send(ws, "pong", {})

    elif msg.type == "conversation:join":
        ref = ConversationRef.model_validate(msg.data)
        async with open_uow(cache) as uow:
            allowed = await uow.participants.is_participant(ref.conversation_id, principal.user_id)
        if not allowed:
            await _error(ws, "forbidden", "You are not a participant in this conversation")
            return
        manager.subscribe(pkey, ref.conversation_id)

    elif msg.type == "conversation:leave":
        ref = ConversationRef.model_validate(msg.data)
        manager.unsubscribe(pkey, ref.conversation_id)

    elif msg.type == "message:send":
        body = WsSendMessage.model_validate(msg.data)
        async with open_uow(cache) as uow:
            await message_service.send_message(
                SendMessageDTO(
                    conversation_id=body.conversation_id,
                    content=body.content,
                    type=body.type,
                    reply_to_id=body.reply_to_id,
                    metadata=body.metadata,
                ),
                principal,
                uow,
            )
        await _typing(ws, principal, body.conversation_id, started=False)

    elif msg.type == "message:read":
        body = WsMarkRead.model_validate(msg.data)
        async with open_uow(cache) as uow:
            await message_service.mark_messages_read(body.message_ids, principal, uow)

    elif msg.type in (EventType.TYPING_START, EventType.TYPING_STOP):
        ref = ConversationRef.model_validate(msg.data)
        async with open_uow(cache) as uow:
            allowed = await uow.participants.is_participant(ref.conversation_id, principal.user_id)
        if allowed:
            await _typing(ws, principal, ref.conversation_id, started=msg.type == EventType.TYPING_START)

    elif msg.type == "presence:update":
        body = WsPresenceUpdate.model_validate(msg.data)
        async with open_uow(cache) as uow:
            await presence_service.update_presence(
                principal.user_id, body.status, body.status_message, uow,
            )

    else:
        await _error(ws, "unknown_type", msg.type)


async def _typing(
    ws: WebSocket, principal: Principal, conversation_id: UUID, *, started: bool
) -> None:
    """Track typing state in Redis and fan the change out to other instances."""
    redis = getattr(ws.app.state, "redis", None)
    if redis is None:
        return
    tracker = TypingTracker(redis, settings.TYPING_TTL)
    if started:
        await tracker.start(conversation_id, principal.user_id)
    else:
        await tracker.stop(conversation_id, principal.user_id)

    event_type = EventType.TYPING_START if started else EventType.TYPING_STOP
    typing_users = await tracker.get_typing_users(conversation_id)
    data = {
        "conversation_id": str(conversation_id),
        "user_id": principal.user_id,
        "typing_users": typing_users,
    }
    try:
        await RedisPubSubPublisher(redis).publish(
            settings.REDIS_PUBSUB_CHANNEL,
            event_type.value,
            {"conversation_ids": [str(conversation_id)]},
            data,
        )
    except (RedisError, OSError):
        logger.warning("Failed to publish %s for %s", event_type, conversation_id, exc_info=True)
