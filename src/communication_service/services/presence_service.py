from __future__ import annotations

import dataclasses
import logging
from datetime import datetime, timedelta, timezone

from communication_service.application.dto.payloads import presence_payload
from communication_service.application.exceptions import ValidationError
from communication_service.application.uow import UnitOfWork
from communication_service.config import settings
from communication_service.domain.entities.presence import UserPresence
from communication_service.domain.events import EventType
from communication_service.domain.value_objects.enums import PresenceStatus
from communication_service.services.events import emit

logger = logging.getLogger(__name__)

STATUS_MESSAGE_MAX_LENGTH = 255


def _offline(user_id: str, now: datetime) -> UserPresence:
    return UserPresence(
        user_id=user_id,
        status=PresenceStatus.OFFLINE,
        last_seen_at=now,
        last_active_at=now,
    )


async def _save(presence: UserPresence, uow: UnitOfWork) -> UserPresence:
    await uow.presence.upsert(presence)
    memberships = await uow.participants.list_for_user(presence.user_id)
    await emit(
        uow,
        EventType.PRESENCE_UPDATED,
        presence_payload(presence),
        conversation_ids=[p.conversation_id for p in memberships],
        user_ids=[presence.user_id],
    )
    return presence


async def update_presence(
    user_id: str,
    status: PresenceStatus,
    status_message: str | None,
    uow: UnitOfWork,
) -> UserPresence:
    if status_message is not None and len(status_message) > STATUS_MESSAGE_MAX_LENGTH:
        raise ValidationError("Status message is too long")

    now = datetime.now(timezone.utc)
    current = await uow.presence.get(user_id) or _offline(user_id, now)
    presence = dataclasses.replace(
        current,
        status=status,
        status_message=status_message,
        last_seen_at=now,
        last_active_at=now,
    )
    await _save(presence, uow)
    await uow.commit()
    return presence


async def heartbeat(user_id: str, uow: UnitOfWork) -> UserPresence:
    now = datetime.now(timezone.utc)
    current = await uow.presence.get(user_id)
    status = PresenceStatus.ONLINE
    if current is not None and current.status not in (PresenceStatus.AWAY, PresenceStatus.OFFLINE):
        status = current.status

    base = current or _offline(user_id, now)
    presence = dataclasses.replace(base, status=status, last_seen_at=now, last_active_at=now)
    if current is None or status != current.status:
        await _save(presence, uow)
    else:
        await uow.presence.upsert(presence)
    await uow.commit()
    return presence


async def connect(user_id: str, uow: UnitOfWork) -> UserPresence:
    now = datetime.now(timezone.utc)
    current = await uow.presence.get(user_id) or _offline(user_id, now)
    status = current.status
    if status in (PresenceStatus.OFFLINE, PresenceStatus.AWAY):
        status = PresenceStatus.ONLINE
    presence = dataclasses.replace(
        current,
        status=status,
        last_seen_at=now,
        last_active_at=now,
        active_connections=current.active_connections + 1,
    )
    await _save(presence, uow)
    await uow.commit()
    return presence


async def disconnect(user_id: str, uow: UnitOfWork) -> UserPresence:
    now = datetime.now(timezone.utc)
    current = await uow.presence.get(user_id) or _offline(user_id, now)
    remaining = max(0, current.active_connections - 1)
    status = PresenceStatus.OFFLINE if remaining == 0 else current.status
    presence = dataclasses.replace(
        current, status=status, last_seen_at=now, active_connections=remaining
    )
    await _save(presence, uow)
    await uow.commit()
    return presence


async def get_presence(user_id: str, uow: UnitOfWork) -> UserPresence:
    presence = await uow.presence.get(user_id)
    return presence or _offline(user_id, datetime.now(timezone.utc))


async def get_many(user_ids: list[str], uow: UnitOfWork) -> list[UserPresence]:
    unique = list(dict.fromkeys(user_ids))
    found = await uow.presence.get_many(unique)
    now = datetime.now(timezone.utc)
    return [found.get(uid) or _offline(uid, now) for uid in unique]


async def list_online(uow: UnitOfWork) -> list[UserPresence]:
    return await uow.presence.list_by_status(
        [PresenceStatus.ONLINE, PresenceStatus.AWAY, PresenceStatus.BUSY]
    )


async def sweep_stale(now: datetime, uow: UnitOfWork) -> int:
    """Downgrade idle users. Returns how many presences changed."""
    away_cutoff = now - timedelta(seconds=settings.PRESENCE_AWAY_AFTER)
    offline_cutoff = now - timedelta(seconds=settings.PRESENCE_OFFLINE_AFTER)

    changed = 0
    candidates = await uow.presence.list_by_status(
        [PresenceStatus.ONLINE, PresenceStatus.AWAY, PresenceStatus.BUSY]
    )
    for presence in candidates:
        if presence.last_seen_at < offline_cutoff:
            target = PresenceStatus.OFFLINE
        elif presence.status == PresenceStatus.ONLINE and presence.last_active_at < away_cutoff:
            target = PresenceStatus.AWAY
        else:
            continue
        updated = dataclasses.replace(
            presence,
            status=target,
            active_connections=0 if target == PresenceStatus.OFFLINE else presence.active_connections,
        )
        await _save(updated, uow)
        changed += 1

    if changed:
        logger.info("Presence sweep downgraded %s user(s)", changed)
    await uow.commit()
    return changed
