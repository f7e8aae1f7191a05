"""
Tests for the excluded-seller settings store.
"""

import pytest

from comparables.config import EngineSettings, SettingsStoreConfig
from comparables.settings_store import (
    InMemorySettingsStore,
    RedisSettingsStore,
    create_settings_store,
)


class FakeRedis:
    """The subset of redis.asyncio.Redis the store uses."""

    def __init__(self):
        self.data = {}
        self.closed = False

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value):
        self.data[key] = value

    async def delete(self, key):
        self.data.pop(key, None)

    async def aclose(self):
        self.closed = True


@pytest.mark.asyncio
async def test_in_memory_store():
    store = InMemorySettingsStore()

    assert await store.get_excluded_seller() is None
    await store.set_excluded_seller("42")
    assert await store.get_excluded_seller() == "42"
    await store.set_excluded_seller("")
    assert await store.get_excluded_seller() is None


@pytest.mark.asyncio
async def test_redis_store_round_trip():
    client = FakeRedis()
    store = RedisSettingsStore("redis://localhost:6379", "comparables:excluded_seller_id", client=client)

    await store.set_excluded_seller("42")
    assert client.data == {"comparables:excluded_seller_id": "42"}
    assert await store.get_excluded_seller() == "42"

    await store.set_excluded_seller(None)
    assert client.data == {}
    assert await store.get_excluded_seller() is None

    await store.close()
    assert client.closed


def test_create_settings_store_backends():
    memory = create_settings_store(EngineSettings())
    assert isinstance(memory, InMemorySettingsStore)

    settings = EngineSettings(settings_store=SettingsStoreConfig(backend="Redis"))
    assert isinstance(create_settings_store(settings), RedisSettingsStore)

    with pytest.raises(ValueError):
        create_settings_store(EngineSettings(settings_store=SettingsStoreConfig(backend="sqlite")))
