"""Redis-backed cache for multi-process deployments."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import redis.asyncio as redis_asyncio
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class RedisCache:
    def __init__(self, client: "redis_asyncio.Redis", prefix: str = "otpmarket:") -> None:
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "otpmarket:") -> "RedisCache":
        return cls(redis_asyncio.from_url(url, decode_responses=True), prefix=prefix)

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self._client.get(self._key(key))
        except RedisError as exc:
            logger.warning("Cache get failed for %s: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable cache entry %s", key)
            return None

    async def set(self, key: str, value: Any, ttl: int) -> None:
        try:
            await self._client.set(self._key(key), json.dumps(value, default=str), ex=ttl)
        except RedisError as exc:
            logger.warning("Cache set failed for %s: %s", key, exc)

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(self._key(key))
        except RedisError as exc:
            logger.warning("Cache delete failed for %s: %s", key, exc)

    async def add(self, key: str, value: Any, ttl: int) -> bool:
        try:
            stored = await self._client.set(self._key(key), json.dumps(value, default=str), ex=ttl, nx=True)
        except RedisError as exc:
            # a broken guard must not block processing; the database decides
            logger.warning("Cache add failed for %s: %s", key, exc)
            return True
        return bool(stored)

    async def close(self) -> None:
        await self._client.aclose()
