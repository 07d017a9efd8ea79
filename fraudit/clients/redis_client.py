import logging
from typing import Any, Dict, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from fraudit.lib.config import get_config

logger = logging.getLogger(__name__)

MAX_CONNECTIONS = 50


def redis_url(redis_config: Dict[str, Any]) -> str:
    host = redis_config.get("host")
    port = redis_config.get("port")
    if not host or not port:
        raise ValueError("Redis configuration is incomplete: host and port are required.")
    scheme = "rediss" if redis_config.get("ssl") else "redis"
    return f"{scheme}://{host}:{port}/{redis_config.get('db', 0)}"


async def init_redis(redis_config: Optional[Dict[str, Any]] = None) -> redis.Redis:
    """Build a pooled client and check the server answers before returning it."""
    redis_config = redis_config or get_config("redis") or {}
    url = redis_url(redis_config)
    logger.debug(f"Connecting to Redis at {url}")

    pool = redis.ConnectionPool.from_url(
        url,
        max_connections=MAX_CONNECTIONS,
        password=redis_config.get("password"),
        decode_responses=True,
    )
    client = redis.Redis(connection_pool=pool)
    try:
        await ping_redis(client)
    except RedisError:
        await client.aclose()
        raise
    return client


async def ping_redis(client: redis.Redis):
    info = await client.info("server")
    logger.info(f"Connected to Redis {info.get('redis_version', 'unknown')}")


async def close_redis(client: Optional[redis.Redis]):
    if client is None:
        return
    try:
        await client.aclose()
        logger.info("Redis client closed")
    except RedisError as e:
        logger.error(f"Error closing Redis client: {e}")
