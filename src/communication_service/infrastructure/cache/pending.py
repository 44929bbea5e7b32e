from __future__ import annotations

from typing import Any

from pydantic import TypeAdapter

from communication_service.infrastructure.cache.redis_cache import RedisCache


class PendingCacheOps:
    """Cache changes collected during a unit of work and applied after commit."""

    def __init__(self) -> None:
        self._invalidate: set[str] = set()
        self._writes: dict[str, tuple[Any, TypeAdapter[Any], int | None]] = {}

    def invalidate(self, *keys_or_patterns: str) -> None:
        for key in keys_or_patterns:
            self._invalidate.add(key)
            self._writes.pop(key, None)

    def write(self, key: str, value: Any, adapter: TypeAdapter[Any], ttl: int | None) -> None:
        self._invalidate.discard(key)
        self._writes[key] = (value, adapter, ttl)

    @property
    def invalidations(self) -> set[str]:
        return set(self._invalidate)

    def clear(self) -> None:
        self._invalidate.clear()
        self._writes.clear()

    async def apply(self, cache: RedisCache) -> None:
        exact = [k for k in self._invalidate if "*" not in k]
        patterns = [k for k in self._invalidate if "*" in k]
        writes = list(self._writes.items())
        self.clear()

        if exact:
            await cache.delete(*exact)
        for pattern in sorted(patterns):
            await cache.delete_pattern(pattern)
        for key, (value, adapter, ttl) in writes:
            await cache.set(key, value, adapter, ttl)
