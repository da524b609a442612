"""Best-effort key/value cache backed by Redis.

Every operation swallows backend failures: a failed `get` is a miss and a
failed `set`/`delete` is a no-op. Callers never need to guard cache calls.
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Optional

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


def ai_cache_key(operation: str, content: str) -> str:
    """Stable key for a generative call: `ai:<operation>:<sha256 prefix>`."""
    digest = hashlib.sha256((content or "").encode("utf-8")).hexdigest()[:32]
    return f"ai:{operation}:{digest}"


class RedisCache:
    def __init__(self, client: Any):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCache":
        return cls(aioredis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> Optional[str]:
        try:
            value = await self._client.get(key)
        except Exception as e:
            logger.warning(f"Cache get failed for {key}: {e}")
            return None
        if isinstance(value, (bytes, bytearray)):
            value = value.decode("utf-8", errors="replace")
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._client.set(key, value, ex=max(1, int(ttl_seconds)))
        except Exception as e:
            logger.warning(f"Cache set failed for {key}: {e}")

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except Exception as e:
            logger.warning(f"Cache delete failed for {key}: {e}")

    async def get_json(self, key: str) -> Optional[Any]:
        raw = await self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding undecodable cache entry {key}")
            return None

    async def set_json(self, key: str, value: Any, ttl_seconds: int) -> None:
        await self.set(key, json.dumps(value, default=str), ttl_seconds)

    async def close(self) -> None:
        try:
            await self._client.aclose()
        except Exception as e:
            logger.warning(f"Cache close failed: {e}")
