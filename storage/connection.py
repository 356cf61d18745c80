import os
import logging
from functools import lru_cache

import redis.asyncio as redis
from redis.exceptions import RedisError, AuthenticationError

# Configure module-level logger
logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_redis_client() -> redis.Redis:
    """
    Creates a singleton asyncio Redis client backed by a connection pool.

    Reads configuration from environment variables:
    - REDIS_HOST: Hostname (default: localhost)
    - REDIS_PORT: Port (default: 6379)
    - REDIS_PASSWORD: Password (REQUIRED)

    No connection is opened here; call verify_connection() at startup.
    """
    host = os.getenv("REDIS_HOST", "localhost")
    port = int(os.getenv("REDIS_PORT", 6379))
    password = os.getenv("REDIS_PASSWORD")

    if not password:
        logger.critical("REDIS_PASSWORD environment variable is not set.")
        raise ValueError("REDIS_PASSWORD is required for production security.")

    pool = redis.ConnectionPool(
        host=host,
        port=port,
        password=password,
        decode_responses=True,  # Returns str instead of bytes
        max_connections=50,
        socket_timeout=5.0,     # Fail fast if container is down
    )
    return redis.Redis(connection_pool=pool)


async def verify_connection(client: redis.Redis) -> None:
    """Ping once at startup; raise if Redis is unreachable."""
    try:
        await client.ping()
        logger.info("Successfully connected to Redis")
    except AuthenticationError:
        logger.critical("Redis authentication failed. Check REDIS_PASSWORD.")
        raise
    except RedisError as e:
        logger.critical(f"Could not connect to Redis: {e}")
        raise
