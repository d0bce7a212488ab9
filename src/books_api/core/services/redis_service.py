"""Redis connection service for managing Redis client lifecycle and health checks."""

import redis.asyncio as redis_async
from loguru import logger
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff

from books_api.runtime.config.config_data import ConfigData
from books_api.runtime.context import get_config


class RedisService:
    """Owns the application's async Redis client.

    Follows the same pattern as DbSessionService: built once at startup,
    handed to whatever needs a client, closed at shutdown.
    """

    def __init__(self, config: ConfigData | None = None):
        """Initialize the Redis service with connection pooling."""
        logger.info("Setting up Redis service")
        config = config or get_config()
        redis_config = config.redis

        self._enabled = redis_config.enabled
        self._client: redis_async.Redis | None = None
        self._url = redis_config.url

        if not self._enabled:
            logger.info("Redis is disabled, service will not connect")
            return

        if not self._url:
            logger.warning("Redis URL not configured, service will not connect")
            self._enabled = False
            return

        logger.info(
            "Initializing Redis client with connection string: {}",
            redis_config.sanitized_connection_string,
        )

        # Reconnects only; a failed command is not replayed by the book service
        retry = Retry(ExponentialBackoff(base=0.1, cap=1), retries=1)

        try:
            self._client = redis_async.from_url(
                redis_config.connection_string,
                encoding="utf-8",
                decode_responses=redis_config.decode_responses,
                max_connections=redis_config.max_connections,
                socket_timeout=redis_config.socket_timeout,
                socket_connect_timeout=redis_config.socket_connect_timeout,
                socket_keepalive=True,
                health_check_interval=30,
                retry=retry,
                client_name="books_api",
            )
        except ValueError as e:
            logger.bind(
                error_type=type(e).__name__,
                error_message=str(e),
            ).error("Failed to initialize Redis client")
            self._enabled = False
            self._client = None
            if config.app.environment == "production":
                raise

    def get_client(self) -> redis_async.Redis | None:
        """Get the Redis async client instance, or None when disabled."""
        if not self._enabled or self._client is None:
            return None
        return self._client

    async def health_check(self) -> bool:
        """Return True if Redis answers a PING."""
        if self._client is None:
            return False

        try:
            await self._client.ping()
            return True
        except Exception as e:
            logger.bind(
                error_type=type(e).__name__,
                error_message=str(e),
            ).error("Redis health check failed")
            return False

    async def close(self) -> None:
        """Close the Redis connection and clean up resources."""
        if self._client is None:
            return
        try:
            logger.info("Closing Redis connection")
            await self._client.aclose()
        except Exception as e:
            logger.bind(
                error_type=type(e).__name__,
                error_message=str(e),
            ).error("Error closing Redis connection")
        finally:
            self._client = None

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def url(self) -> str | None:
        return self._url
