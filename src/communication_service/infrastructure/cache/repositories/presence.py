from __future__ import annotations

from pydantic import TypeAdapter

from communication_service.application.repositories.presence import PresenceRepository
from communication_service.domain.entities.presence import UserPresence
from communication_service.infrastructure.cache import keys
from communication_service.infrastructure.cache.pending import PendingCacheOps
from communication_service.infrastructure.cache.redis_cache import RedisCache

_PRESENCE = TypeAdapter(UserPresence)


class CachedPresenceRepository:
    """Presence is written through to the cache once the transaction commits."""

    def __init__(
        self,
        repo: PresenceRepository,
        cache: RedisCache,
        pending: PendingCacheOps,
        *,
        ttl: int,
    ) -> None:
        self._repo = repo
        self._cache = cache
        self._pending = pending
        self._ttl = ttl

    async def get(self, user_id: str) -> UserPresence | None:
        key = keys.presence(user_id)
        cached = await self._cache.get(key, _PRESENCE)
        if cached is not None:
            return cached
        presence = await self._repo.get(user_id)
        if presence is not None:
            await self._cache.set(key, presence, _PRESENCE, self._ttl)
        return presence

    async def get_many(self, user_ids: list[str]) -> dict[str, UserPresence]:
        wanted = {keys.presence(uid): uid for uid in dict.fromkeys(user_ids)}
        hits = await self._cache.get_many(list(wanted), _PRESENCE)
        found = {p.user_id: p for p in hits.values()}

        missing = [uid for key, uid in wanted.items() if key not in hits]
        if missing:
            loaded = await self._repo.get_many(missing)
            for uid, presence in loaded.items():
                await self._cache.set(keys.presence(uid), presence, _PRESENCE, self._ttl)
            found.update(loaded)
        return found

    async def upsert(self, presence: UserPresence) -> None:
        await self._repo.upsert(presence)
        self._pending.write(keys.presence(presence.user_id), presence, _PRESENCE, self._ttl)

    async def list_by_status(self, statuses: list[str]) -> list[UserPresence]:
        return await self._repo.list_by_status(statuses)
