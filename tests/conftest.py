"""Shared test fixtures."""
from __future__ import annotations

import dataclasses
import fnmatch
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import pytest

from communication_service.application.dto.message import MessageSearchParams
from communication_service.application.dto.notification import NotificationFilterDTO
from communication_service.application.dto.principal import Principal
from communication_service.application.repositories.outbox import OutboxRecord
from communication_service.domain.entities.conversation import Conversation
from communication_service.domain.entities.message import (
    Message,
    MessageReaction,
    MessageReadReceipt,
)
from communication_service.domain.entities.notification import (
    Notification,
    NotificationPreference,
    NotificationQueueItem,
    NotificationTemplate,
)
from communication_service.domain.entities.participant import Participant
from communication_service.domain.entities.presence import UserPresence
from communication_service.domain.value_objects.enums import (
    PRIORITY_RANK,
    UNREAD_NOTIFICATION_STATUSES,
    ConversationType,
    MessageType,
    NotificationChannel,
    NotificationPriority,
    NotificationStatus,
    NotificationType,
    ParticipantRole,
    QueueStatus,
)


@pytest.fixture
def coach() -> Principal:
    return Principal(user_id="coach-1", roles=["coach"], team_ids=["team-1"])


@pytest.fixture
def player() -> Principal:
    return Principal(user_id="player-1", roles=["player"], team_ids=["team-1"])


@pytest.fixture
def other_player() -> Principal:
    return Principal(user_id="player-2", roles=["player"], team_ids=["team-1"])


def make_conversation(
    *,
    conversation_id: UUID | None = None,
    type: str = ConversationType.GROUP,
    created_by: str = "coach-1",
    name: str | None = "Team chat",
    updated_at: datetime | None = None,
    last_message_at: datetime | None = None,
) -> Conversation:
    now = datetime.now(timezone.utc)
    return Conversation(
        id=conversation_id or uuid.uuid4(),
        type=type,
        name=name,
        description=None,
        avatar_url=None,
        created_by=created_by,
        created_at=now,
        updated_at=updated_at or now,
        last_message_at=last_message_at,
    )


def make_participant(
    conversation_id: UUID,
    user_id: str,
    *,
    role: str = ParticipantRole.MEMBER,
    joined_at: datetime | None = None,
    last_read_at: datetime | None = None,
) -> Participant:
    return Participant(
        conversation_id=conversation_id,
        user_id=user_id,
        role=role,
        joined_at=joined_at or datetime.now(timezone.utc),
        last_read_at=last_read_at,
    )


def make_message(
    *,
    conversation_id: UUID,
    sender_id: str = "player-1",
    content: str | None = "hello",
    type: str = MessageType.TEXT,
    created_at: datetime | None = None,
) -> Message:
    return Message(
        id=uuid.uuid4(),
        conversation_id=conversation_id,
        sender_id=sender_id,
        type=type,
        content=content,
        created_at=created_at or datetime.now(timezone.utc),
    )


def make_notification(
    *,
    recipient_id: str = "player-1",
    status: str = NotificationStatus.PENDING,
    type: str = NotificationType.TEAM_ANNOUNCEMENT,
    priority: str = NotificationPriority.NORMAL,
    channels: list[str] | None = None,
    created_at: datetime | None = None,
    delivered_at: datetime | None = None,
) -> Notification:
    now = created_at or datetime.now(timezone.utc)
    return Notification(
        id=uuid.uuid4(),
        recipient_id=recipient_id,
        type=type,
        title="Heads up",
        message="Practice moved",
        priority=priority,
        status=status,
        channels=channels or [NotificationChannel.IN_APP],
        created_at=now,
        updated_at=now,
        delivered_at=delivered_at,
    )


def make_queue_item(
    notification_id: UUID,
    *,
    channel: str = NotificationChannel.IN_APP,
    attempt_count: int = 0,
    status: str = QueueStatus.PENDING,
    priority: str = NotificationPriority.NORMAL,
    created_at: datetime | None = None,
    scheduled_for: datetime | None = None,
    next_attempt_at: datetime | None = None,
    started_at: datetime | None = None,
) -> NotificationQueueItem:
    return NotificationQueueItem(
        id=uuid.uuid4(),
        notification_id=notification_id,
        channel=channel,
        status=status,
        priority=priority,
        attempt_count=attempt_count,
        created_at=created_at or datetime.now(timezone.utc),
        scheduled_for=scheduled_for,
        next_attempt_at=next_attempt_at,
        started_at=started_at,
    )


def make_presence(
    user_id: str,
    status: str,
    *,
    idle: timedelta = timedelta(0),
    connections: int = 1,
) -> UserPresence:
    seen = datetime.now(timezone.utc) - idle
    return UserPresence(
        user_id=user_id,
        status=status,
        last_seen_at=seen,
        last_active_at=seen,
        active_connections=connections,
    )


# -- participants -----------------------------------------------------------


@dataclass
class FakeParticipantReader:
    _participants: list[Participant] = field(default_factory=list)

    async def get(
        self, conversation_id: UUID, user_id: str, *, active_only: bool = True
    ) -> Participant | None:
        for p in self._participants:
            if p.conversation_id == conversation_id and p.user_id == user_id:
                if active_only and not p.is_active:
                    return None
                return p
        return None

    async def is_participant(self, conversation_id: UUID, user_id: str) -> bool:
        return await self.get(conversation_id, user_id) is not None

    async def list_participants(
        self, conversation_id: UUID, *, active_only: bool = True
    ) -> list[Participant]:
        found = [
            p
            for p in self._participants
            if p.conversation_id == conversation_id and (p.is_active or not active_only)
        ]
        return sorted(found, key=lambda p: p.joined_at)

    async def list_for_user(self, user_id: str) -> list[Participant]:
        return [p for p in self._participants if p.user_id == user_id and p.is_active]


@dataclass
class FakeParticipantWriter:
    _reader: FakeParticipantReader

    async def add(self, participant: Participant) -> None:
        self._reader._participants.append(participant)

    async def add_many(self, participants: list[Participant]) -> None:
        self._reader._participants.extend(participants)

    async def mark_left(self, conversation_id: UUID, user_id: str, ts: datetime) -> None:
        await self.update(conversation_id, user_id, {"left_at": ts})

    async def update(self, conversation_id: UUID, user_id: str, values: dict[str, Any]) -> None:
        rows = self._reader._participants
        for i, p in enumerate(rows):
            if p.conversation_id == conversation_id and p.user_id == user_id:
                rows[i] = dataclasses.replace(p, **values)


# -- conversations ------------------------------------------------------------


@dataclass
class FakeConversationReader:
    _participants: FakeParticipantReader
    _store: dict[UUID, Conversation] = field(default_factory=dict)

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        conv = self._store.get(conversation_id)
        return conv if conv is not None and conv.deleted_at is None else None

    async def find_direct_between(self, user_a: str, user_b: str) -> Conversation | None:
        for conv in self._store.values():
            if conv.type != ConversationType.DIRECT or conv.deleted_at is not None:
                continue
            members = {p.user_id for p in await self._participants.list_participants(conv.id)}
            if {user_a, user_b} <= members:
                return conv
        return None

    async def _for_user(
        self, user_id: str, type: str | None, include_archived: bool
    ) -> list[Conversation]:
        found = []
        for p in await self._participants.list_for_user(user_id):
            conv = await self.get_by_id(p.conversation_id)
            if conv is None or (type and conv.type != type):
                continue
            if p.archived_at is not None and not include_archived:
                continue
            found.append(conv)
        return sorted(found, key=lambda c: c.last_activity_at, reverse=True)

    async def list_for_user(
        self,
        user_id: str,
        *,
        type: str | None = None,
        include_archived: bool = False,
        offset: int = 0,
        limit: int = 20,
    ) -> list[Conversation]:
        found = await self._for_user(user_id, type, include_archived)
        return found[offset : offset + limit]

    async def count_for_user(
        self, user_id: str, *, type: str | None = None, include_archived: bool = False
    ) -> int:
        return len(await self._for_user(user_id, type, include_archived))


@dataclass
class FakeConversationWriter:
    _reader: FakeConversationReader

    async def create(self, conversation: Conversation) -> Conversation:
        self._reader._store[conversation.id] = conversation
        return conversation

    async def update(self, conversation_id: UUID, values: dict[str, Any]) -> None:
        conv = self._reader._store[conversation_id]
        self._reader._store[conversation_id] = dataclasses.replace(conv, **values)

    async def soft_delete(self, conversation_id: UUID, ts: datetime) -> None:
        await self.update(conversation_id, {"deleted_at": ts})

    async def touch_last_message_at(self, conversation_id: UUID, ts: datetime) -> None:
        await self.update(conversation_id, {"last_message_at": ts})


# -- messages -----------------------------------------------------------------


@dataclass
class FakeMessageReader:
    _messages: list[Message] = field(default_factory=list)

    def _live(self, conversation_id: UUID) -> list[Message]:
        return [
            m
            for m in self._messages
            if m.conversation_id == conversation_id and m.deleted_at is None
        ]

    async def get_by_id(self, message_id: UUID, *, include_deleted: bool = False) -> Message | None:
        for m in self._messages:
            if m.id == message_id and (include_deleted or m.deleted_at is None):
                return m
        return None

    async def get_many(self, message_ids: list[UUID]) -> list[Message]:
        wanted = set(message_ids)
        return [m for m in self._messages if m.id in wanted and m.deleted_at is None]

    async def get_last_message(self, conversation_id: UUID) -> Message | None:
        live = self._live(conversation_id)
        return max(live, key=lambda m: m.created_at) if live else None

    def _filtered(self, conversation_id: UUID, search: str | None) -> list[Message]:
        live = self._live(conversation_id)
        if search:
            live = [m for m in live if m.content and search.lower() in m.content.lower()]
        return live

    async def list_messages(
        self,
        conversation_id: UUID,
        *,
        before: datetime | None = None,
        after: datetime | None = None,
        search: str | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> list[Message]:
        found = self._filtered(conversation_id, search)
        if before is not None:
            found = [m for m in found if m.created_at < before]
        if after is not None:
            found = [m for m in found if m.created_at > after]
        found.sort(key=lambda m: m.created_at, reverse=after is None)
        return found[offset : offset + limit]

    async def count_messages(self, conversation_id: UUID, *, search: str | None = None) -> int:
        return len(self._filtered(conversation_id, search))

    async def count_unread(
        self, conversation_id: UUID, user_id: str, since: datetime | None
    ) -> int:
        return sum(
            1
            for m in self._live(conversation_id)
            if m.sender_id != user_id and (since is None or m.created_at > since)
        )

    async def search(
        self, conversation_ids: list[UUID], params: MessageSearchParams
    ) -> list[Message]:
        found = [
            m
            for cid in conversation_ids
            for m in self._live(cid)
            if m.content and params.query.lower() in m.content.lower()
            and (params.type is None or m.type == params.type)
        ]
        found.sort(key=lambda m: m.created_at, reverse=True)
        return found[: min(params.limit, 50)]


@dataclass
class FakeMessageWriter:
    _reader: FakeMessageReader

    def _replace(self, message_id: UUID, **values: Any) -> None:
        rows = self._reader._messages
        for i, m in enumerate(rows):
            if m.id == message_id:
                rows[i] = dataclasses.replace(m, **values)

    async def create(self, message: Message) -> Message:
        self._reader._messages.append(message)
        return message

    async def update_content(
        self,
        message_id: UUID,
        content: str,
        metadata: dict[str, Any],
        edited_at: datetime,
    ) -> None:
        self._replace(message_id, content=content, metadata=metadata, edited_at=edited_at)

    async def soft_delete(self, message_id: UUID, deleted_by: str, ts: datetime) -> None:
        self._replace(message_id, deleted_at=ts, deleted_by=deleted_by)


@dataclass
class FakeReactions:
    _reactions: list[MessageReaction] = field(default_factory=list)

    async def list_for_user(self, message_id: UUID, user_id: str) -> list[MessageReaction]:
        return [r for r in self._reactions if r.message_id == message_id and r.user_id == user_id]

    async def add(self, reaction: MessageReaction) -> None:
        self._reactions.append(reaction)

    async def remove(self, message_id: UUID, user_id: str, emoji: str) -> None:
        self._reactions = [
            r
            for r in self._reactions
            if not (r.message_id == message_id and r.user_id == user_id and r.emoji == emoji)
        ]

    async def counts_for_messages(self, message_ids: list[UUID]) -> dict[UUID, dict[str, int]]:
        counts: dict[UUID, dict[str, int]] = {}
        for r in self._reactions:
            if r.message_id in message_ids:
                per_message = counts.setdefault(r.message_id, {})
                per_message[r.emoji] = per_message.get(r.emoji, 0) + 1
        return counts


@dataclass
class FakeReceipts:
    _receipts: list[MessageReadReceipt] = field(default_factory=list)

    async def read_message_ids(self, user_id: str, message_ids: list[UUID]) -> set[UUID]:
        wanted = set(message_ids)
        return {r.message_id for r in self._receipts if r.user_id == user_id and r.message_id in wanted}

    async def add_many(self, receipts: list[MessageReadReceipt]) -> None:
        existing = {(r.message_id, r.user_id) for r in self._receipts}
        for r in receipts:
            if (r.message_id, r.user_id) not in existing:
                self._receipts.append(r)
                existing.add((r.message_id, r.user_id))


# -- notifications ------------------------------------------------------------


@dataclass
class FakeNotificationReader:
    _store: dict[UUID, Notification] = field(default_factory=dict)

    def _for(self, user_id: str, filters: NotificationFilterDTO | None = None) -> list[Notification]:
        found = [
            n for n in self._store.values() if n.recipient_id == user_id and n.deleted_at is None
        ]
        if filters is not None and filters.status:
            found = [n for n in found if n.status == filters.status]
        if filters is not None and filters.priority:
            found = [n for n in found if n.priority == filters.priority]
        return sorted(found, key=lambda n: n.created_at, reverse=True)

    async def get_by_id(self, notification_id: UUID) -> Notification | None:
        n = self._store.get(notification_id)
        return n if n is not None and n.deleted_at is None else None

    async def list_for_user(self, user_id: str, filters: NotificationFilterDTO) -> list[Notification]:
        return self._for(user_id, filters)[filters.offset : filters.offset + filters.limit]

    async def count_for_user(self, user_id: str, filters: NotificationFilterDTO) -> int:
        return len(self._for(user_id, filters))

    async def count_unread(self, user_id: str) -> int:
        return len(await self.list_unread_ids(user_id))

    async def list_unread_ids(self, user_id: str) -> list[UUID]:
        return [n.id for n in self._for(user_id) if n.status in UNREAD_NOTIFICATION_STATUSES]

    async def list_for_stats(
        self,
        *,
        user_id: str | None = None,
        team_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Notification]:
        return [
            n
            for n in self._store.values()
            if n.deleted_at is None
            and (user_id is None or n.recipient_id == user_id)
            and (team_id is None or n.team_id == team_id)
            and (start is None or n.created_at >= start)
            and (end is None or n.created_at <= end)
        ]


@dataclass
class FakeNotificationWriter:
    _reader: FakeNotificationReader

    def _replace(self, notification_id: UUID, **values: Any) -> None:
        n = self._reader._store[notification_id]
        self._reader._store[notification_id] = dataclasses.replace(n, **values)

    async def create(self, notification: Notification) -> Notification:
        self._reader._store[notification.id] = notification
        return notification

    async def mark_read(self, notification_id: UUID, recipient_id: str, ts: datetime) -> None:
        self._replace(notification_id, status=NotificationStatus.READ, read_at=ts)

    async def mark_all_read(
        self,
        recipient_id: str,
        ts: datetime,
        notification_ids: list[UUID] | None = None,
    ) -> int:
        ids = await self._reader.list_unread_ids(recipient_id)
        if notification_ids is not None:
            ids = [i for i in ids if i in notification_ids]
        for i in ids:
            await self.mark_read(i, recipient_id, ts)
        return len(ids)

    async def soft_delete(self, notification_id: UUID, recipient_id: str, ts: datetime) -> None:
        self._replace(notification_id, deleted_at=ts)

    async def mark_sent(
        self,
        notification_id: UUID,
        recipient_id: str,
        ts: datetime,
        *,
        delivered: bool = False,
    ) -> None:
        current = self._reader._store[notification_id]
        if delivered and current.status in ("pending", "sent", "failed"):
            self._replace(
                notification_id,
                status=NotificationStatus.DELIVERED,
                sent_at=current.sent_at or ts,
                delivered_at=ts,
            )
        elif not delivered and current.status in ("pending", "failed"):
            self._replace(notification_id, status=NotificationStatus.SENT, sent_at=ts)

    async def mark_failed(self, notification_id: UUID, recipient_id: str, error: str) -> None:
        current = self._reader._store[notification_id]
        status = NotificationStatus.FAILED if current.status in ("pending", "sent") else current.status
        self._replace(notification_id, status=status, error_message=error)


@dataclass
class FakeNotificationQueue:
    """Mirrors the SQL claim rules: due pending rows, due retries and stale claims."""

    _items: list[NotificationQueueItem] = field(default_factory=list)
    completed: list[UUID] = field(default_factory=list)
    failures: list[tuple[UUID, str, datetime | None]] = field(default_factory=list)

    async def enqueue(self, items: list[NotificationQueueItem]) -> None:
        self._items.extend(items)

    def get(self, item_id: UUID) -> NotificationQueueItem:
        return next(i for i in self._items if i.id == item_id)

    def _replace(self, item_id: UUID, **changes) -> None:
        self._items = [
            dataclasses.replace(i, **changes) if i.id == item_id else i for i in self._items
        ]

    @staticmethod
    def _is_due(item: NotificationQueueItem, now: datetime, stale_before: datetime | None) -> bool:
        if item.status == QueueStatus.PENDING:
            return item.scheduled_for is None or item.scheduled_for <= now
        if item.status == QueueStatus.FAILED:
            return item.next_attempt_at is not None and item.next_attempt_at <= now
        if item.status == QueueStatus.PROCESSING and stale_before is not None:
            return item.started_at is not None and item.started_at < stale_before
        return False

    async def claim_due(
        self,
        batch_size: int,
        now: datetime,
        stale_before: datetime | None = None,
    ) -> list[NotificationQueueItem]:
        due = sorted(
            (i for i in self._items if self._is_due(i, now, stale_before)),
            key=lambda i: (PRIORITY_RANK.get(i.priority, 4), i.created_at),
        )[:batch_size]
        for item in due:
            self._replace(item.id, status=QueueStatus.PROCESSING, started_at=now)
        return [self.get(i.id) for i in due]

    async def mark_completed(self, item_id: UUID, ts: datetime) -> None:
        self.completed.append(item_id)
        self._replace(item_id, status=QueueStatus.COMPLETED, completed_at=ts, last_error=None)

    async def mark_failed(self, item_id: UUID, error: str, next_attempt_at: datetime | None) -> None:
        self.failures.append((item_id, error, next_attempt_at))
        item = self.get(item_id)
        self._replace(
            item_id,
            status=QueueStatus.FAILED,
            attempt_count=item.attempt_count + 1,
            last_error=error,
            next_attempt_at=next_attempt_at,
        )


@dataclass
class FakeTemplates:
    _templates: list[NotificationTemplate] = field(default_factory=list)

    async def get_active(self, type: str, channel: str) -> NotificationTemplate | None:
        for t in self._templates:
            if t.type == type and t.channel == channel and t.is_active:
                return t
        return None


@dataclass
class FakePreferences:
    _prefs: list[NotificationPreference] = field(default_factory=list)

    async def list_for_user(self, user_id: str) -> list[NotificationPreference]:
        return [p for p in self._prefs if p.user_id == user_id]

    async def upsert(self, preference: NotificationPreference) -> None:
        self._prefs = [
            p
            for p in self._prefs
            if (p.user_id, p.type, p.channel)
            != (preference.user_id, preference.type, preference.channel)
        ]
        self._prefs.append(preference)


# -- presence / outbox --------------------------------------------------------


@dataclass
class FakePresence:
    _store: dict[str, UserPresence] = field(default_factory=dict)

    async def get(self, user_id: str) -> UserPresence | None:
        return self._store.get(user_id)

    async def get_many(self, user_ids: list[str]) -> dict[str, UserPresence]:
        return {uid: self._store[uid] for uid in user_ids if uid in self._store}

    async def upsert(self, presence: UserPresence) -> None:
        self._store[presence.user_id] = presence

    async def list_by_status(self, statuses: list[str]) -> list[UserPresence]:
        return [p for p in self._store.values() if p.status in statuses]


@dataclass
class FakeOutboxWriter:
    _records: list[dict[str, Any]] = field(default_factory=list)
    _pending: list[OutboxRecord] = field(default_factory=list)
    sent: list[int] = field(default_factory=list)
    failed: list[tuple[int, str, datetime | None]] = field(default_factory=list)

    async def add(self, event_type: str, payload: dict[str, Any]) -> None:
        self._records.append({"event_type": event_type, "payload": payload})

    async def fetch_pending(self, batch_size: int) -> list[OutboxRecord]:
        return self._pending[:batch_size]

    async def mark_sent(self, ids: list[int]) -> None:
        self.sent.extend(ids)

    async def mark_failed(self, record_id: int, error: str, next_retry_at: datetime | None) -> None:
        self.failed.append((record_id, error, next_retry_at))

    def events(self, event_type: str) -> list[dict[str, Any]]:
        return [r["payload"] for r in self._records if r["event_type"] == event_type]


@dataclass
class FakeUoW:
    """In-memory UoW for unit tests."""

    participants: FakeParticipantReader = field(default_factory=FakeParticipantReader)
    messages: FakeMessageReader = field(default_factory=FakeMessageReader)
    reactions: FakeReactions = field(default_factory=FakeReactions)
    receipts: FakeReceipts = field(default_factory=FakeReceipts)
    notifications: FakeNotificationReader = field(default_factory=FakeNotificationReader)
    notification_queue: FakeNotificationQueue = field(default_factory=FakeNotificationQueue)
    templates: FakeTemplates = field(default_factory=FakeTemplates)
    preferences: FakePreferences = field(default_factory=FakePreferences)
    presence: FakePresence = field(default_factory=FakePresence)
    outbox: FakeOutboxWriter = field(default_factory=FakeOutboxWriter)
    _committed: bool = False
    _commits: int = 0

    def __post_init__(self) -> None:
        self.conversations = FakeConversationReader(self.participants)
        self.conversations_w = FakeConversationWriter(self.conversations)
        self.participants_w = FakeParticipantWriter(self.participants)
        self.messages_w = FakeMessageWriter(self.messages)
        self.notifications_w = FakeNotificationWriter(self.notifications)

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self._committed = True
        self._commits += 1

    async def rollback(self) -> None:
        pass

    async def __aenter__(self) -> FakeUoW:
        return self

    async def __aexit__(self, *exc: object) -> None:
        pass

    def seed_conversation(
        self,
        conversation: Conversation,
        *members: str,
        admins: tuple[str, ...] = (),
    ) -> Conversation:
        self.conversations._store[conversation.id] = conversation
        base = conversation.created_at - timedelta(minutes=len(members) + len(admins) + 1)
        for i, user_id in enumerate([*admins, *members]):
            self.participants._participants.append(
                make_participant(
                    conversation.id,
                    user_id,
                    role=ParticipantRole.ADMIN if user_id in admins else ParticipantRole.MEMBER,
                    joined_at=base + timedelta(minutes=i),
                )
            )
        return conversation


class FakeRedis:
    """Subset of the redis.asyncio client used by the cache, typing and pub/sub code."""

    def __init__(self) -> None:
        self.data: dict[str, Any] = {}
        self.ttls: dict[str, int] = {}
        self.zsets: dict[str, dict[str, float]] = {}
        self.published: list[tuple[str, str]] = []
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise ConnectionError("redis down")

    async def get(self, key: str) -> Any:
        self._check()
        return self.data.get(key)

    async def mget(self, keys: list[str]) -> list[Any]:
        self._check()
        return [self.data.get(k) for k in keys]

    async def set(self, key: str, value: Any, ex: int | None = None) -> bool:
        self._check()
        self.data[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def delete(self, *keys: str) -> int:
        self._check()
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None or self.zsets.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def scan_iter(self, match: str | None = None, count: int | None = None):
        self._check()
        for key in list(self.data):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    async def publish(self, channel: str, message: str) -> int:
        self._check()
        self.published.append((channel, message))
        return 1

    async def zadd(self, key: str, mapping: dict[str, float]) -> int:
        self._check()
        self.zsets.setdefault(key, {}).update(mapping)
        return len(mapping)

    async def zrem(self, key: str, *members: str) -> int:
        self._check()
        zset = self.zsets.get(key, {})
        return sum(1 for m in members if zset.pop(m, None) is not None)

    async def zremrangebyscore(self, key: str, min: Any, max: float) -> int:
        self._check()
        zset = self.zsets.get(key, {})
        stale = [m for m, score in zset.items() if score <= max]
        for m in stale:
            del zset[m]
        return len(stale)

    async def zrange(self, key: str, start: int, end: int) -> list[str]:
        self._check()
        members = sorted(self.zsets.get(key, {}).items(), key=lambda kv: kv[1])
        return [m for m, _ in members]

    async def expire(self, key: str, seconds: int) -> bool:
        self._check()
        self.ttls[key] = seconds
        return True

    async def ping(self) -> bool:
        self._check()
        return True


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()
