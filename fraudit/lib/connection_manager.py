import logging
from asyncio import Event, Lock
from typing import Any, Dict, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError
from fastapi import FastAPI
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from fraudit.clients.redis_client import close_redis, init_redis


class ConnectionManager:
    """Owns the process-wide Redis connection pool.

    Created once in the application lifespan. Notification sessions borrow
    the client through :meth:`get_redis_client` and never close it.
    """

    _instance: Optional["ConnectionManager"] = None
    _lock = Lock()

    def __init__(self, redis_config: Optional[Dict[str, Any]] = None):
        self.app: Optional[FastAPI] = None
        self.redis_config = redis_config
        self.redis_client: Optional[redis.Redis] = None
        self._redis_ready = Event()
        self.logger = logging.getLogger(__name__)

    @classmethod
    async def create(
        cls,
        app: Optional[FastAPI] = None,
        redis_config: Optional[Dict[str, Any]] = None,
    ) -> "ConnectionManager":
        if cls._instance is None:
            async with cls._lock:
                if cls._instance is None:
                    instance = cls(redis_config)
                    instance.app = app
                    await instance.connect()
                    cls._instance = instance
        return cls._instance

    @classmethod
    def reset(cls):
        cls._instance = None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((ConnectionError, OSError, RedisError)),
        reraise=True,
    )
    async def _connect_redis(self) -> redis.Redis:
        return await init_redis(self.redis_config)

    async def connect(self):
        try:
            self.redis_client = await self._connect_redis()
        except Exception as e:
            self.logger.error(f"Could not connect to Redis: {e}")
            raise
        self._redis_ready.set()
        self.logger.info("Redis connection pool ready")

    async def get_redis_client(self) -> redis.Redis:
        await self._redis_ready.wait()
        if self.redis_client is None:
            raise RuntimeError("Redis client not initialized")
        return self.redis_client

    async def close_clients(self):
        if self.redis_client is None:
            self.logger.debug("No Redis client to close")
            return
        client, self.redis_client = self.redis_client, None
        self._redis_ready.clear()
        await close_redis(client)
