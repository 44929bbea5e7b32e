from __future__ import annotations

from types import TracebackType
from typing import Self

from sqlalchemy.ext.asyncio import AsyncSession

from communication_service.config import settings
from communication_service.infrastructure.cache.pending import PendingCacheOps
from communication_service.infrastructure.cache.redis_cache import RedisCache
from communication_service.infrastructure.cache.repositories.conversation import (
    CachedConversationRepository,
    CachedParticipantWriter,
)
from communication_service.infrastructure.cache.repositories.message import (
    CachedMessageRepository,
)
from communication_service.infrastructure.cache.repositories.notification import (
    CachedNotificationRepository,
)
from communication_service.infrastructure.cache.repositories.presence import (
    CachedPresenceRepository,
)
from communication_service.infrastructure.db.repositories.conversation import (
    ConversationReaderRepo,
    ConversationWriterRepo,
)
from communication_service.infrastructure.db.repositories.message import (
    MessageReaderRepo,
    MessageWriterRepo,
    ReactionRepo,
    ReadReceiptRepo,
)
from communication_service.infrastructure.db.repositories.notification import (
    NotificationQueueRepo,
    NotificationReaderRepo,
    NotificationWriterRepo,
    PreferenceRepo,
    TemplateReaderRepo,
)
from communication_service.infrastructure.db.repositories.outbox import OutboxWriterRepo
from communication_service.infrastructure.db.repositories.participant import (
    ParticipantReaderRepo,
    ParticipantWriterRepo,
)
from communication_service.infrastructure.db.repositories.presence import PresenceRepo


class SqlAlchemyUoW:
    """Concrete Unit-of-Work backed by a single AsyncSession.

    With a cache, readers go through the cache-aside wrappers and the
    invalidations they collect are applied only after a successful commit.
    """

    def __init__(self, session: AsyncSession, cache: RedisCache | None = None) -> None:
        self._session = session
        self._cache = cache
        self._pending = PendingCacheOps()

        self.participants = ParticipantReaderRepo(session)
        self.participants_w = ParticipantWriterRepo(session)
        self.conversations = ConversationReaderRepo(session)
        self.conversations_w = ConversationWriterRepo(session)
        self.messages = MessageReaderRepo(session)
        self.messages_w = MessageWriterRepo(session)
        self.reactions = ReactionRepo(session)
        self.receipts = ReadReceiptRepo(session)
        self.notifications = NotificationReaderRepo(session)
        self.notifications_w = NotificationWriterRepo(session)
        self.notification_queue = NotificationQueueRepo(session)
        self.templates = TemplateReaderRepo(session)
        self.preferences = PreferenceRepo(session)
        self.presence = PresenceRepo(session)
        self.outbox = OutboxWriterRepo(session)

        if cache is not None and cache.enabled:
            self._wrap_with_cache(cache)

    def _wrap_with_cache(self, cache: RedisCache) -> None:
        conversations = CachedConversationRepository(
            self.conversations,
            self.conversations_w,
            self.participants,
            cache,
            self._pending,
            ttl=settings.CACHE_DEFAULT_TTL,
            list_ttl=settings.CACHE_SHORT_TTL,
        )
        self.conversations = self.conversations_w = conversations
        self.participants_w = CachedParticipantWriter(self.participants_w, self._pending)

        messages = CachedMessageRepository(
            self.messages,
            self.messages_w,
            self.participants,
            cache,
            self._pending,
            ttl=settings.CACHE_LONG_TTL,
            list_ttl=settings.CACHE_SHORT_TTL,
        )
        self.messages = self.messages_w = messages

        notifications = CachedNotificationRepository(
            self.notifications,
            self.notifications_w,
            cache,
            self._pending,
            ttl=settings.CACHE_DEFAULT_TTL,
            list_ttl=settings.CACHE_SHORT_TTL,
        )
        self.notifications = self.notifications_w = notifications

        self.presence = CachedPresenceRepository(
            self.presence, cache, self._pending, ttl=settings.PRESENCE_CACHE_TTL
        )

    async def flush(self) -> None:
        await self._session.flush()

    async def commit(self) -> None:
        await self._session.commit()
        if self._cache is not None:
            await self._pending.apply(self._cache)

    async def rollback(self) -> None:
        self._pending.clear()
        await self._session.rollback()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            await self.rollback()
