"""Best-effort TTL cache backends."""

from .backend import CacheBackend, build_cache
from .memory import MemoryCache
from .redis_cache import RedisCache

__all__ = ["CacheBackend", "MemoryCache", "RedisCache", "build_cache"]
