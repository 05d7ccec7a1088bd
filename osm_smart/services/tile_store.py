"""
Redis-backed tile cache.

One hash holds every cached tile: the field is the cache id, the value the
serialized JSON payload. HSET replaces a field atomically, so a row is written
once per key and never merged.
"""

import logging
from typing import Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from ..config import Config, get_config

logger = logging.getLogger(__name__)


class CacheStoreError(Exception):
    """Raised when the backing store rejects a read or write."""

    def __init__(self, message: str, is_oom: bool = False):
        super().__init__(message)
        self.is_oom = is_oom

    @property
    def status(self) -> int:
        return 413 if self.is_oom else 500


def _wrap(operation: str, key: str, exc: Exception) -> CacheStoreError:
    is_oom = "OOM" in str(exc)
    logger.error(f"[CACHE] {operation} {key} failed: {exc}")
    if is_oom:
        return CacheStoreError("Cache store is out of memory; narrow the search area", is_oom=True)
    return CacheStoreError(f"Cache store {operation} failed: {exc}")


class TileStore:
    """Keyed tile rows over a redis.asyncio client."""

    def __init__(self, client, hash_key: str = "tiles"):
        self.client = client
        self.hash_key = hash_key

    @classmethod
    def from_config(cls, config: Optional[Config] = None) -> "TileStore":
        config = config or get_config()
        client = aioredis.from_url(
            config.redis_config.url,
            socket_timeout=config.redis_config.socket_timeout,
            socket_connect_timeout=config.redis_config.socket_connect_timeout,
            decode_responses=True,
        )
        return cls(client, config.redis_config.tiles_key)

    async def get(self, key: str) -> Optional[str]:
        """Stored payload for key, or None on a miss."""
        try:
            value = await self.client.hget(self.hash_key, key)
        except RedisError as e:
            raise _wrap("read", key, e) from e
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    async def put(self, key: str, data: str) -> None:
        """Insert or replace the row for key."""
        try:
            await self.client.hset(self.hash_key, key, data)
        except RedisError as e:
            raise _wrap("write", key, e) from e
        logger.debug(f"[CACHE] stored {key} ({len(data)} bytes)")

    async def delete(self, key: str) -> bool:
        try:
            removed = await self.client.hdel(self.hash_key, key)
        except RedisError as e:
            raise _wrap("delete", key, e) from e
        return bool(removed)

    async def count(self) -> int:
        try:
            return int(await self.client.hlen(self.hash_key))
        except RedisError as e:
            raise _wrap("count", self.hash_key, e) from e

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except RedisError as e:
            logger.warning(f"[CACHE] ping failed: {e}")
            return False

    async def close(self) -> None:
        close = getattr(self.client, "aclose", None) or getattr(self.client, "close", None)
        if close is not None:
            await close()
