import redis
import redis.asyncio

from Ainimo_Save.save_shared import errors, config
from Ainimo_Save.save_shared.types import StorageHealth


async def create_storage_client() -> redis.asyncio.Redis:
    r = redis.asyncio.Redis(
        host=config.REDIS_HOST,
        port=config.REDIS_PORT,
        db=config.REDIS_SAVE_DB,
        decode_responses=False,
        socket_connect_timeout=config.REDIS_SOCKET_TIMEOUT,
        socket_timeout=config.REDIS_SOCKET_TIMEOUT,
    )
    try:
        await r.ping()
    except (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError, OSError):
        await r.aclose()
        raise errors.StorageUnavailableError(f"Cannot connect to Redis at {config.REDIS_HOST}:{config.REDIS_PORT}")
    return r


async def health_check(client: redis.asyncio.Redis, storage_key: str = config.STORAGE_KEY) -> StorageHealth:
    connected = False
    key_count = 0
    has_save = False
    uptime = 0.0

    try:
        connected = bool(await client.ping())
        key_count = await client.dbsize()
        has_save = bool(await client.exists(storage_key))
        info = await client.info()
        uptime = float(info.get("uptime_in_seconds", 0))
    except (redis.exceptions.RedisError, OSError):
        pass

    return StorageHealth(
        connected=connected,
        key_count=key_count,
        has_save=has_save,
        uptime_seconds=uptime,
    )


async def close_client(client: redis.asyncio.Redis) -> None:
    await client.aclose()
