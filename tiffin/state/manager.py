"""Redis-based state manager backing the marketplace tables."""

from __future__ import annotations

import json
from typing import Any, Callable

import redis.asyncio as redis
from redis.exceptions import WatchError

from tiffin.config import get_settings
from tiffin.utils.logging import get_logger

logger = get_logger(__name__)


def _decode(value: Any) -> Any:
    if value is None:
        return None
    try:
        return json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return value


def _encode(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value


class StateManager:
    """Centralized state management using Redis."""

    def __init__(self, redis_client: redis.Redis | None = None) -> None:
        settings = get_settings()
        self.redis_client: redis.Redis | None = redis_client
        self.redis_url = settings.redis_url

    async def connect(self) -> None:
        """Establish Redis connection."""
        if self.redis_client is None:
            self.redis_client = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            logger.info("redis_connected", url=self.redis_url)

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self.redis_client:
            await self.redis_client.aclose()
            self.redis_client = None
            logger.info("redis_disconnected")

    async def _client(self) -> redis.Redis:
        if not self.redis_client:
            await self.connect()
        return self.redis_client

    async def set(
        self,
        key: str,
        value: Any,
        ttl: int | None = None,
    ) -> None:
        """Set a value in Redis with optional TTL."""
        client = await self._client()
        await client.set(key, _encode(value), ex=ttl)
        logger.debug("state_set", key=key, ttl=ttl)

    async def get(self, key: str) -> Any:
        """Get a value from Redis."""
        client = await self._client()
        return _decode(await client.get(key))

    async def mget(self, keys: list[str]) -> list[Any]:
        """Get several values in one round trip."""
        if not keys:
            return []
        client = await self._client()
        return [_decode(value) for value in await client.mget(keys)]

    async def compare_and_swap(
        self,
        key: str,
        mutate: Callable[[Any], Any],
    ) -> tuple[Any, Any]:
        """Atomically replace the JSON value at ``key``.

        ``mutate`` receives the current value and returns the replacement, or
        raises to abort without writing. The write only commits if ``key`` was
        not modified after it was read; otherwise ``mutate`` is evaluated again
        against the fresh value.

        Returns:
            The ``(old, new)`` values.
        """
        client = await self._client()

        async with client.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(key)
                    current = _decode(await pipe.get(key))
                    updated = mutate(current)
                    pipe.multi()
                    pipe.set(key, _encode(updated))
                    await pipe.execute()
                    return current, updated
                except WatchError:
                    logger.debug("state_cas_conflict", key=key)
                    continue

    async def sadd(self, key: str, *members: str) -> None:
        """Add members to a set."""
        client = await self._client()
        await client.sadd(key, *members)

    async def srem(self, key: str, *members: str) -> None:
        """Remove members from a set."""
        client = await self._client()
        await client.srem(key, *members)

    async def smembers(self, key: str) -> set[str]:
        """Get all members of a set."""
        client = await self._client()
        return set(await client.smembers(key))

    async def scard(self, key: str) -> int:
        """Count members of a set."""
        client = await self._client()
        return await client.scard(key)

    async def hsetnx(self, key: str, field: str, value: Any) -> bool:
        """Set a hash field only if it does not exist yet."""
        client = await self._client()
        return bool(await client.hsetnx(key, field, _encode(value)))

    async def hget(self, key: str, field: str) -> Any:
        """Get a hash field."""
        client = await self._client()
        return _decode(await client.hget(key, field))

    async def hdel(self, key: str, field: str) -> None:
        """Remove a hash field."""
        client = await self._client()
        await client.hdel(key, field)

    async def publish(self, channel: str, message: str) -> None:
        """Publish a message to a channel."""
        client = await self._client()
        await client.publish(channel, message)
        logger.debug("message_published", channel=channel)

    async def flush(self) -> None:
        """Drop every key in the current database."""
        client = await self._client()
        await client.flushdb()
        logger.warning("state_flushed")


# Global state manager instance
_state_manager: StateManager | None = None


async def get_state_manager() -> StateManager:
    """Get the global state manager instance."""
    global _state_manager
    if _state_manager is None:
        _state_manager = StateManager()
        await _state_manager.connect()
    return _state_manager
