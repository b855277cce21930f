import pytest

from indigo_api.errors import ConflictError
import indigo_api.stores.redis as redis_store

LOCK_KEY = "lock:economy:alice"


class MemoryRedis:
    """Just enough of the Redis client for SET NX and the release script."""

    def __init__(self):
        self.data: dict[str, str] = {}

    async def set(self, key, value, nx=False, ex=None):
        if nx and key in self.data:
            return None
        self.data[key] = value
        return True

    async def eval(self, script, numkeys, key, token):
        if self.data.get(key) == token:
            del self.data[key]
            return 1
        return 0


@pytest.fixture
def memory_redis(monkeypatch: pytest.MonkeyPatch) -> MemoryRedis:
    fake = MemoryRedis()
    monkeypatch.setattr(redis_store, "_redis", fake)
    return fake


@pytest.mark.asyncio
async def test_lock_is_exclusive_and_released(memory_redis):
    async with redis_store.economy_lock("alice"):
        assert LOCK_KEY in memory_redis.data
        with pytest.raises(ConflictError):
            async with redis_store.economy_lock("alice"):
                pass
    assert LOCK_KEY not in memory_redis.data


@pytest.mark.asyncio
async def test_expired_lock_taken_by_another_request_is_kept(memory_redis):
    async with redis_store.economy_lock("alice"):
        # TTL ran out and a second request acquired the key
        memory_redis.data[LOCK_KEY] = "other-owner"
    assert memory_redis.data[LOCK_KEY] == "other-owner"


@pytest.mark.asyncio
async def test_release_needs_matching_token(memory_redis):
    token = await redis_store.acquire_lock("economy:alice")
    assert token
    assert await redis_store.acquire_lock("economy:alice") is None
    assert await redis_store.release_lock("economy:alice", "not-mine") is False
    assert await redis_store.release_lock("economy:alice", token) is True


@pytest.mark.asyncio
async def test_lock_runs_unlocked_without_redis(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(redis_store, "_redis", None)
    ran = False
    async with redis_store.economy_lock("alice"):
        ran = True
    assert ran
