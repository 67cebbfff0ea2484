"""Cache backend interface.

The cache is advisory: every consumer must behave correctly on a miss, so
backends log their own failures and report them as misses.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

from otpmarket.core.config import CacheSettings


class CacheBackend(Protocol):
    async def get(self, key: str) -> Optional[Any]:
        ...

    async def set(self, key: str, value: Any, ttl: int) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def add(self, key: str, value: Any, ttl: int) -> bool:
        """Set only when ``key`` is absent; ``True`` when this call stored it."""
        ...

    async def close(self) -> None:
        ...


def build_cache(settings: CacheSettings) -> CacheBackend:
    if settings.url:
        from .redis_cache import RedisCache

        return RedisCache.from_url(settings.url)
    from .memory import MemoryCache

    return MemoryCache()
