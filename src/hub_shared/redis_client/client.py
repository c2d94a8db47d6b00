"""Redis client wrapper for the audit event channel."""

from typing import Any

import redis.asyncio as redis

from hub_shared.models import Event

CHANNEL_PREFIX = "ocm:events"


class RedisClient:
    """Async Redis publisher with a single connection pool."""

    def __init__(self, url: str = "redis://localhost:6379"):
        """Initialize Redis client.

        Args:
            url: Redis connection URL
        """
        self._url = url
        self._pool: redis.ConnectionPool | None = None
        self._client: redis.Redis | None = None

    async def connect(self) -> None:
        """Initialize the connection pool."""
        self._pool = redis.ConnectionPool.from_url(self._url, decode_responses=True)
        self._client = redis.Redis(connection_pool=self._pool)

    async def close(self) -> None:
        """Close all connections."""
        if self._client is not None:
            await self._client.aclose()
        if self._pool is not None:
            await self._pool.disconnect()
        self._client = None
        self._pool = None

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            raise RuntimeError("Redis client not connected. Call connect() first.")
        return self._client

    # =========================================================================
    # PubSub Operations
    # =========================================================================

    async def publish_event(self, event: Event) -> int:
        """Publish an audit event.

        Channels:
        - ocm:events:all
        - ocm:events:{category} (csr, cluster, controller)
        - ocm:events:cluster:{name} when the event concerns a cluster

        Args:
            event: Event to publish

        Returns:
            Number of subscribers that received the message on the main channel
        """
        client = self.client

        event_type_str = (
            event.event_type.value if hasattr(event.event_type, "value") else event.event_type
        )
        type_channel = f"{CHANNEL_PREFIX}:{event_type_str.lower().split('_')[0]}"

        message = event.model_dump_json()

        receivers = await client.publish(f"{CHANNEL_PREFIX}:all", message)
        await client.publish(type_channel, message)

        if event.cluster_name:
            await client.publish(f"{CHANNEL_PREFIX}:cluster:{event.cluster_name}", message)

        return receivers

    # =========================================================================
    # Health Check
    # =========================================================================

    async def health_check(self) -> dict[str, Any]:
        """Check Redis connectivity.

        Returns:
            Health status dict
        """
        try:
            await self.client.ping()
        except Exception as e:
            return {"status": "unhealthy", "error": str(e)}
        return {"status": "healthy"}
