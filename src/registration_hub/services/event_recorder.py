"""Audit event recorder.

Every approval, denial, availability transition, taint change and
controller failure is logged and published on Redis pub/sub. Recording is
fire-and-forget: a failing publish is logged and never reaches the caller.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from hub_shared.models import Availability, Event, EventType, RegistrationRequest, Taint
from hub_shared.observability import get_logger
from hub_shared.redis_client import RedisClient

logger = get_logger(__name__)


class EventRecorder:
    """Records human-readable controller events."""

    def __init__(self, redis_client: RedisClient | None = None, source: str = "registration-hub"):
        self.redis = redis_client
        self.source = source

    async def record(
        self,
        event_type: EventType,
        reason: str,
        message: str,
        cluster_name: str | None = None,
        object_name: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> Event:
        """Log and publish an event."""
        event = Event(
            event_id=uuid4(),
            event_type=event_type,
            reason=reason,
            message=message,
            cluster_name=cluster_name,
            object_name=object_name,
            timestamp=datetime.now(timezone.utc),
            payload={"source": self.source, **(payload or {})},
        )

        logger.info(
            message,
            event_type=event_type.value,
            reason=reason,
            cluster=cluster_name,
            object=object_name,
        )

        if self.redis is not None:
            try:
                await self.redis.publish_event(event)
            except Exception as e:
                logger.warning(
                    "Failed to publish event",
                    event_type=event_type.value,
                    error=str(e),
                )
        return event

    async def csr_approved(self, request: RegistrationRequest, policy: str, reason: str) -> Event:
        return await self.record(
            EventType.CSR_APPROVED,
            reason=policy,
            message=f"Registration request {request.name!r} approved: {reason}",
            cluster_name=request.cluster_name,
            object_name=request.name,
            payload={"requester": request.requester, "variant": request.variant.value},
        )

    async def csr_denied(self, request: RegistrationRequest, policy: str, reason: str) -> Event:
        return await self.record(
            EventType.CSR_DENIED,
            reason=policy,
            message=f"Registration request {request.name!r} denied: {reason}",
            cluster_name=request.cluster_name,
            object_name=request.name,
            payload={"requester": request.requester, "variant": request.variant.value},
        )

    async def availability_changed(
        self, cluster_name: str, old: Availability, new: Availability, age_seconds: float | None
    ) -> Event:
        return await self.record(
            EventType.CLUSTER_AVAILABILITY_CHANGED,
            reason=f"ManagedCluster{new.value}",
            message=f"Cluster {cluster_name!r} availability changed from {old.value} to {new.value}",
            cluster_name=cluster_name,
            object_name=cluster_name,
            payload={
                "old_state": old.value,
                "new_state": new.value,
                "heartbeat_age_seconds": age_seconds,
            },
        )

    async def taint_added(self, cluster_name: str, taint: Taint) -> Event:
        return await self.record(
            EventType.CLUSTER_TAINT_ADDED,
            reason="TaintAdded",
            message=f"Taint {taint.key!r} added to cluster {cluster_name!r}",
            cluster_name=cluster_name,
            object_name=cluster_name,
            payload={"key": taint.key, "effect": taint.effect.value},
        )

    async def taint_removed(self, cluster_name: str, key: str) -> Event:
        return await self.record(
            EventType.CLUSTER_TAINT_REMOVED,
            reason="TaintRemoved",
            message=f"Taint {key!r} removed from cluster {cluster_name!r}",
            cluster_name=cluster_name,
            object_name=cluster_name,
            payload={"key": key},
        )

    async def controller_error(self, controller: str, key: str, error: Exception) -> Event:
        return await self.record(
            EventType.CONTROLLER_ERROR,
            reason=type(error).__name__,
            message=f"Controller {controller!r} failed to reconcile {key!r}: {error}",
            object_name=key,
            payload={"controller": controller},
        )
