"""Redis-backed storage shared by the repositories.

Documents are stored as JSON strings under plain keys. Sets hold the indexes
and hashes hold flat string maps (driver codes, rates).
"""

from __future__ import annotations

import json
from typing import Any

import redis.asyncio as redis

from fletes.config import get_settings
from fletes.utils.logging import get_logger

logger = get_logger(__name__)


def _decode(value: str | None) -> Any:
    if value is None:
        return None
    try:
        return json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return value


class StateManager:
    """Thin async wrapper over the Redis commands the service uses."""

    def __init__(self, client: redis.Redis | None = None) -> None:
        self.redis_client: redis.Redis | None = client
        self.redis_url = get_settings().redis_url

    async def connect(self) -> None:
        """Open the Redis connection pool if not already open."""
        if self.redis_client is not None:
            return
        self.redis_client = redis.from_url(
            self.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
        logger.info("redis_connected", url=self.redis_url)

    async def disconnect(self) -> None:
        if self.redis_client is None:
            return
        await self.redis_client.aclose()
        self.redis_client = None
        logger.info("redis_disconnected")

    async def _client(self) -> redis.Redis:
        if self.redis_client is None:
            await self.connect()
        return self.redis_client

    async def ping(self) -> bool:
        client = await self._client()
        return bool(await client.ping())

    # Documents

    async def set(self, key: str, value: Any) -> None:
        """Store a value; dicts and lists are written as JSON."""
        client = await self._client()
        if isinstance(value, (dict, list)):
            value = json.dumps(value)
        await client.set(key, value)
        logger.debug("state_set", key=key)

    async def get(self, key: str) -> Any:
        """Read a value, decoding JSON when possible. None if missing."""
        client = await self._client()
        return _decode(await client.get(key))

    async def mget(self, keys: list[str]) -> list[Any]:
        """Read several values in one round trip, None for missing keys."""
        if not keys:
            return []
        client = await self._client()
        return [_decode(value) for value in await client.mget(keys)]

    async def delete(self, key: str) -> bool:
        """Remove a key. Returns whether it existed."""
        client = await self._client()
        removed = await client.delete(key)
        logger.debug("state_deleted", key=key, existed=bool(removed))
        return bool(removed)

    async def exists(self, key: str) -> bool:
        client = await self._client()
        return bool(await client.exists(key))

    # Hashes of plain strings

    async def hset(self, key: str, field: str, value: str) -> None:
        client = await self._client()
        await client.hset(key, field, value)

    async def hdel(self, key: str, field: str) -> None:
        client = await self._client()
        await client.hdel(key, field)

    async def hgetall(self, key: str) -> dict[str, str]:
        client = await self._client()
        return dict(await client.hgetall(key))

    # Index sets

    async def sadd(self, key: str, *members: str) -> None:
        client = await self._client()
        await client.sadd(key, *members)

    async def srem(self, key: str, *members: str) -> None:
        client = await self._client()
        await client.srem(key, *members)

    async def smembers(self, key: str) -> set[str]:
        client = await self._client()
        return set(await client.smembers(key))

    async def publish(self, channel: str, message: str) -> None:
        """Publish to a pub/sub channel."""
        client = await self._client()
        receivers = await client.publish(channel, message)
        logger.debug("message_published", channel=channel, receivers=receivers)


# Global state manager instance
_state_manager: StateManager | None = None


async def get_state_manager() -> StateManager:
    """Get the global state manager, connecting it on first use."""
    global _state_manager
    if _state_manager is None:
        _state_manager = StateManager()
        await _state_manager.connect()
    return _state_manager


def set_state_manager(manager: StateManager | None) -> None:
    """Replace the global state manager (tests, scripts)."""
    global _state_manager
    _state_manager = manager
