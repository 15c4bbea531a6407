"""
String-keyed storage backends for save records.

RedisStorage is the default backend. MemoryStorage keeps records in-process
and is what select_storage() falls back to when Redis cannot be written.
Every backend failure surfaces as StorageError.
"""

import logging
from typing import Optional, Protocol

import redis
import redis.asyncio

from Ainimo_Save.save_shared import config, errors

logger = logging.getLogger(__name__)


class SaveStorage(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class RedisStorage:
    def __init__(self, client: redis.asyncio.Redis):
        self.db: redis.asyncio.Redis = client

    async def get(self, key: str) -> Optional[str]:
        try:
            value = await self.db.get(key)
        except (redis.exceptions.RedisError, OSError) as e:
            raise errors.StorageError("get", e)

        if value is None:
            return None
        if isinstance(value, bytes):
            try:
                return value.decode("utf-8")
            except UnicodeDecodeError:
                raise errors.FormatError("stored record is not valid UTF-8")
        return value

    async def set(self, key: str, value: str) -> None:
        try:
            await self.db.set(key, value)
        except (redis.exceptions.RedisError, OSError) as e:
            raise errors.StorageError("set", e)

    async def delete(self, key: str) -> None:
        try:
            await self.db.delete(key)
        except (redis.exceptions.RedisError, OSError) as e:
            raise errors.StorageError("delete", e)


class MemoryStorage:
    """Dict-backed store with an optional byte quota."""

    def __init__(self, quota_bytes: Optional[int] = None):
        self._data: dict[str, str] = {}
        self.quota_bytes = quota_bytes
        self.writes = 0

    def _usage_with(self, key: str, value: str) -> int:
        used = sum(len(v.encode("utf-8")) for k, v in self._data.items() if k != key)
        return used + len(value.encode("utf-8"))

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        if self.quota_bytes is not None and self._usage_with(key, value) > self.quota_bytes:
            raise errors.StorageError("set", f"quota of {self.quota_bytes} bytes exceeded")
        self._data[key] = value
        self.writes += 1

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


async def probe(storage: SaveStorage) -> bool:
    """Write and remove a throwaway key to confirm the backend is usable."""
    try:
        await storage.set(config.STORAGE_PROBE_KEY, "test")
        await storage.delete(config.STORAGE_PROBE_KEY)
        return True
    except errors.StorageError:
        return False


async def select_storage(client: Optional[redis.asyncio.Redis] = None) -> SaveStorage:
    """Prefer Redis; fall back to in-process memory when it is unusable."""
    if client is not None:
        storage = RedisStorage(client)
        if await probe(storage):
            return storage
    logger.warning("Redis storage not available, falling back to in-memory storage")
    return MemoryStorage()
