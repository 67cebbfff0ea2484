"""In-process TTL cache used in development and tests."""

from __future__ import annotations

import copy
import time
from typing import Any, Callable, Dict, Optional


class MemoryCache:
    """Dict-backed cache with per-entry expiry.

    Values are deep-copied on the way in and out so callers cannot mutate
    cached state, mirroring the serialisation boundary of a remote cache.
    Expired entries are dropped when read, and swept at most once per
    ``prune_interval`` seconds on write, since guard keys are written and
    never read again.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, prune_interval: float = 60.0) -> None:
        self._entries: Dict[str, tuple[float, Any]] = {}
        self._clock = clock
        self._prune_interval = prune_interval
        self._next_prune = 0.0
        self.stats = {"hits": 0, "misses": 0, "sets": 0, "deletes": 0, "evictions": 0}

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            self.stats["misses"] += 1
            return None
        expires_at, value = entry
        if expires_at <= self._clock():
            del self._entries[key]
            self.stats["evictions"] += 1
            self.stats["misses"] += 1
            return None
        self.stats["hits"] += 1
        return copy.deepcopy(value)

    async def set(self, key: str, value: Any, ttl: int) -> None:
        self._prune()
        self._entries[key] = (self._clock() + ttl, copy.deepcopy(value))
        self.stats["sets"] += 1

    async def delete(self, key: str) -> None:
        if self._entries.pop(key, None) is not None:
            self.stats["deletes"] += 1

    async def add(self, key: str, value: Any, ttl: int) -> bool:
        if await self.get(key) is not None:
            return False
        await self.set(key, value, ttl)
        return True

    async def clear(self) -> None:
        self._entries.clear()

    async def close(self) -> None:
        self._entries.clear()

    def _prune(self) -> None:
        now = self._clock()
        if now < self._next_prune:
            return
        self._next_prune = now + self._prune_interval
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        self.stats["evictions"] += len(expired)
