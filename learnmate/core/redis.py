"""Redis client for the course outline cache.

Redis is optional: when it cannot be reached at startup the catalog reads
straight from Cassandra and `OutlineCache.client` stays None.
"""

import redis.asyncio as redis

from learnmate.config import get_settings
from learnmate.core.logging import get_logger


logger = get_logger(__name__)

OUTLINE_KEY_PREFIX = "catalog:course"


def course_outline_key(course_id: str) -> str:
    """Cache key for the ordered lesson outline of a course."""
    return f"{OUTLINE_KEY_PREFIX}:{course_id}:lessons"


class OutlineCache:
    """Process-wide Redis client holder, mirroring the Cassandra connection."""

    client: redis.Redis | None = None

    @classmethod
    async def connect(cls) -> redis.Redis:
        """Open the pool and ping it.

        Raises:
            redis.ConnectionError: If the server does not answer the ping
        """
        if cls.client is not None:
            return cls.client

        settings = get_settings()
        client = redis.from_url(
            settings.redis_url,
            max_connections=settings.redis_max_connections,
            socket_timeout=settings.redis_socket_timeout,
            socket_connect_timeout=settings.redis_socket_connect_timeout,
            retry_on_timeout=settings.redis_retry_on_timeout,
            health_check_interval=settings.redis_health_check_interval,
            decode_responses=True,
        )

        try:
            await client.ping()
        except redis.ConnectionError as e:
            logger.warning("outline_cache_unreachable", error=str(e))
            await client.aclose()
            raise

        cls.client = client
        logger.info("outline_cache_connected", url=settings.redis_url)
        return client

    @classmethod
    async def disconnect(cls) -> None:
        if cls.client is None:
            return
        await cls.client.aclose()
        cls.client = None
        logger.info("outline_cache_disconnected")

    @classmethod
    def is_connected(cls) -> bool:
        return cls.client is not None
