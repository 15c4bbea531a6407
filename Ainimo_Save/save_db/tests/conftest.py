import fakeredis
import pytest
import pytest_asyncio

from Ainimo_Save.save_db.storage import MemoryStorage, RedisStorage


@pytest_asyncio.fixture
async def redis_client():
    r = fakeredis.FakeAsyncRedis()
    yield r
    await r.flushdb()
    await r.aclose()


@pytest_asyncio.fixture
async def broken_redis_client():
    server = fakeredis.FakeServer()
    server.connected = False
    r = fakeredis.FakeAsyncRedis(server=server)
    yield r
    await r.aclose()


@pytest.fixture
def redis_storage(redis_client):
    return RedisStorage(redis_client)


@pytest.fixture
def memory_storage():
    return MemoryStorage()
