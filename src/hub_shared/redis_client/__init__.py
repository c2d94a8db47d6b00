"""Redis client wrapper for the audit event channel (ocm:events:*)."""

from .client import CHANNEL_PREFIX, RedisClient

__all__ = [
    "CHANNEL_PREFIX",
    "RedisClient",
]
