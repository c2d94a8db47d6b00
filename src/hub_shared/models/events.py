"""Audit event models.

Events are ephemeral: they are logged and published, never persisted.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import Field

from .base import HubBaseModel


class EventType(str, Enum):
    """Audit event types emitted by the hub controllers."""

    # Approval controller events
    CSR_APPROVED = "CSR_APPROVED"
    CSR_DENIED = "CSR_DENIED"

    # Liveness controller events
    CLUSTER_AVAILABILITY_CHANGED = "CLUSTER_AVAILABILITY_CHANGED"
    CLUSTER_TAINT_ADDED = "CLUSTER_TAINT_ADDED"
    CLUSTER_TAINT_REMOVED = "CLUSTER_TAINT_REMOVED"

    # Runtime events
    CONTROLLER_ERROR = "CONTROLLER_ERROR"


class Event(HubBaseModel):
    """Human-readable record of a controller action."""

    event_id: UUID
    event_type: EventType
    reason: str = Field(description="Machine-readable reason, e.g. ManagedClusterAutoApproved")
    message: str = Field(description="Human-readable description")
    cluster_name: str | None = None
    object_name: str | None = None
    timestamp: datetime
    payload: dict[str, Any] = Field(
        default_factory=dict, description="Event-specific payload"
    )
