"""
Persistent engine settings.

Holds the rarely-changing excluded seller id. The orchestrator reloads it before
every analysis, so a change made through any process is picked up on the next
search.
"""

import logging
from typing import Optional

import redis.asyncio as redis

from comparables.config import EngineSettings, get_engine_settings


logger = logging.getLogger(__name__)


class SettingsStore:
    """Get/set interface for the excluded seller setting."""

    async def get_excluded_seller(self) -> Optional[str]:
        raise NotImplementedError

    async def set_excluded_seller(self, value: Optional[str]) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        pass


class InMemorySettingsStore(SettingsStore):
    """Process-local store, the default for development and tests."""

    def __init__(self, excluded_seller: Optional[str] = None):
        self._excluded_seller = excluded_seller

    async def get_excluded_seller(self) -> Optional[str]:
        return self._excluded_seller

    async def set_excluded_seller(self, value: Optional[str]) -> None:
        self._excluded_seller = value or None


class RedisSettingsStore(SettingsStore):
    """Redis-backed store shared by every engine process."""

    def __init__(self, redis_url: str, key: str, client: Optional[redis.Redis] = None):
        self.key = key
        self._client = client or redis.from_url(redis_url, decode_responses=True)

    async def get_excluded_seller(self) -> Optional[str]:
        value = await self._client.get(self.key)
        return value or None

    async def set_excluded_seller(self, value: Optional[str]) -> None:
        if value:
            await self._client.set(self.key, value)
        else:
            await self._client.delete(self.key)
        logger.info(f"Excluded seller stored in Redis: {value or 'none'}")

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("Redis connection closed")


def create_settings_store(settings: Optional[EngineSettings] = None) -> SettingsStore:
    """Build the configured settings store backend."""
    settings = settings or get_engine_settings()
    config = settings.settings_store
    backend = config.backend.strip().lower()

    if backend == "redis":
        logger.info(f"Using Redis settings store at {config.redis_url}")
        return RedisSettingsStore(config.redis_url, config.excluded_seller_key)
    if backend != "memory":
        raise ValueError(f"Unknown settings backend: {config.backend!r} (expected 'memory' or 'redis')")
    return InMemorySettingsStore()
