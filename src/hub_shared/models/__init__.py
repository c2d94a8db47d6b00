"""Shared data models for the registration hub.

All models follow these conventions:
- Timestamps: timezone aware, UTC
- Field names: lowercase snake_case
- Enums: uppercase SNAKE_CASE members
"""

# Base
from .base import HubBaseModel, SnapshotModel

# Cluster domain
from .cluster import (
    TAINT_UNREACHABLE,
    Availability,
    HeartbeatRecord,
    RegistrationState,
    SpokeCluster,
    Taint,
    TaintEffect,
)

# Event models
from .events import Event, EventType

# Registration domain
from .registration import (
    CLUSTER_NAME_LABEL,
    ApprovalDecision,
    ApprovalOutcome,
    DecisionState,
    KeyUsage,
    RegistrationRequest,
    SchemaVariant,
)

__all__ = [
    # Base
    "HubBaseModel",
    "SnapshotModel",
    # Cluster
    "TAINT_UNREACHABLE",
    "Availability",
    "HeartbeatRecord",
    "RegistrationState",
    "SpokeCluster",
    "Taint",
    "TaintEffect",
    # Registration
    "CLUSTER_NAME_LABEL",
    "ApprovalDecision",
    "ApprovalOutcome",
    "DecisionState",
    "KeyUsage",
    "RegistrationRequest",
    "SchemaVariant",
    # Events
    "Event",
    "EventType",
]
