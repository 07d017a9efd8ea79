# fraudit/lib/storage.py

import logging
from abc import ABC, abstractmethod
from typing import Optional, Set

import redis.asyncio as redis


class KeyValueStorage(ABC):
    """Durable string key/value storage for a single user."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]: ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None: ...

    @abstractmethod
    async def remove(self, key: str) -> None: ...

    @abstractmethod
    async def add_member(self, key: str, member: str) -> None: ...

    @abstractmethod
    async def members(self, key: str) -> Set[str]: ...


class RedisStorage(KeyValueStorage):
    """Key/value storage in Redis, scoped to a key namespace.

    Errors are propagated; callers decide whether a failure is fatal.
    """

    def __init__(self, redis_client: redis.Redis, namespace: str):
        if redis_client is None:
            raise ValueError("redis_client must be provided")
        self.redis_client = redis_client
        self.namespace = namespace
        self.logger = logging.getLogger(__name__)

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[str]:
        try:
            value = await self.redis_client.get(self._key(key))
            if isinstance(value, bytes):
                value = value.decode("utf-8")
            return value
        except Exception as e:
            self.logger.error(f"Error reading {self._key(key)} from Redis: {e}")
            raise

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        try:
            await self.redis_client.set(self._key(key), value, ex=ttl)
            self.logger.debug(f"Stored {self._key(key)} in Redis")
        except Exception as e:
            self.logger.error(f"Error storing {self._key(key)} in Redis: {e}")
            raise

    async def remove(self, key: str) -> None:
        try:
            await self.redis_client.delete(self._key(key))
            self.logger.debug(f"Deleted {self._key(key)} from Redis")
        except Exception as e:
            self.logger.error(f"Error removing {self._key(key)} from Redis: {e}")
            raise

    async def add_member(self, key: str, member: str) -> None:
        try:
            await self.redis_client.sadd(self._key(key), member)
        except Exception as e:
            self.logger.error(f"Error adding to set {self._key(key)} in Redis: {e}")
            raise

    async def members(self, key: str) -> Set[str]:
        try:
            values = await self.redis_client.smembers(self._key(key))
            return {
                v.decode("utf-8") if isinstance(v, bytes) else v for v in values or ()
            }
        except Exception as e:
            self.logger.error(f"Error reading set {self._key(key)} from Redis: {e}")
            raise


def user_namespace(user_id: str) -> str:
    return f"fraudit:user:{user_id}"
