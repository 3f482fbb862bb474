# app/infrastructure/redis_connection.py

import logging
import redis.asyncio as aioredis
from config.settings import settings
from exceptions.domain_exceptions import InternalServerException

logger = logging.getLogger(__name__)


class RedisConnection:
    """
    Connection to the Redis instance holding room event logs.

    Every command is bounded by the persistence timeout. The event log is
    optional: when Redis is unreachable at startup the game keeps running and
    history writes are dropped with a warning.
    """

    def __init__(self):
        self.client: aioredis.Redis | None = None

    @property
    def is_connected(self) -> bool:
        return self.client is not None

    async def connect(self, required: bool = True):
        if self.client is not None:
            return

        client = aioredis.Redis(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            db=settings.REDIS_DB,
            password=settings.REDIS_PASSWORD,
            decode_responses=settings.REDIS_DECODE_RESPONSES,
            socket_timeout=settings.PERSISTENCE_TIMEOUT_SECONDS,
            socket_connect_timeout=settings.PERSISTENCE_TIMEOUT_SECONDS,
        )
        try:
            await client.ping()
        except Exception as e:
            await client.aclose()
            if required:
                logger.error(f"Failed to connect to Redis: {e}")
                raise
            logger.warning(f"Redis unavailable ({e}); room event log disabled")
            return

        self.client = client
        logger.info(f"Connected to Redis at {settings.REDIS_HOST}:{settings.REDIS_PORT}")

    async def disconnect(self):
        if self.client:
            await self.client.aclose()
            self.client = None
            logger.info("Disconnected from Redis")

    def get_client(self) -> aioredis.Redis:
        """
        Raises:
            InternalServerException: If Redis is not connected
        """
        if not self.client:
            raise InternalServerException(message="Room event log is unavailable")
        return self.client


# Shared instance
redis_connection = RedisConnection()


def get_redis() -> aioredis.Redis:
    return redis_connection.get_client()
