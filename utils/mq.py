"""
Redis Pub/Sub publisher with connection pooling and retries.

Used to announce completed harvest runs to downstream consumers.
"""

import logging
from typing import Any, Optional

import orjson
import redis.asyncio as redis
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from utils.config import settings
from utils.errors import ConfigError

logger = logging.getLogger(__name__)


class RedisPublisher:
    """Redis publisher for Pub/Sub events with connection pooling and retries."""

    def __init__(self, redis_url: Optional[str] = None, max_connections: Optional[int] = None) -> None:
        """Initialize Redis publisher.

        Args:
            redis_url: Redis connection URL, defaults to settings.REDIS_URL
            max_connections: Pool size, defaults to settings.REDIS_MAX_CONNECTIONS
        """
        self.redis_url = redis_url or settings.REDIS_URL
        self.max_connections = max_connections or settings.REDIS_MAX_CONNECTIONS
        self.client: Optional[redis.Redis] = None

    async def connect(self) -> None:
        """Establish Redis connection with connection pooling.

        Raises:
            ConfigError: If no Redis URL is configured
        """
        if not self.redis_url:
            raise ConfigError("REDIS_URL is not configured")

        if self.client is None:
            self.client = redis.from_url(
                self.redis_url,
                max_connections=self.max_connections,
                decode_responses=False,  # orjson produces bytes
            )

    @retry(
        retry=retry_if_exception_type((redis.RedisError, redis.ConnectionError, redis.TimeoutError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        reraise=True,
    )
    async def publish(self, channel: str, message: dict[str, Any]) -> int:
        """Publish message to Redis channel with retry logic.

        Args:
            channel: Redis channel name
            message: Message payload dict (JSON-serialized with orjson)

        Returns:
            Number of subscribers that received the message

        Raises:
            redis.RedisError: If publishing fails after retries
        """
        if self.client is None:
            await self.connect()

        return await self.client.publish(channel, orjson.dumps(message))

    async def close(self) -> None:
        """Close Redis connection and cleanup resources."""
        if self.client:
            await self.client.aclose()
            self.client = None
