"""API response schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from hub_shared.models import Availability, RegistrationState, SchemaVariant, SpokeCluster


class InformerStatus(BaseModel):
    synced: bool
    items: int


class ControllerStatus(BaseModel):
    """Runtime figures of one controller."""

    name: str
    workers: int
    queue_depth: int = Field(description="Keys waiting for a worker")
    in_flight: int = Field(description="Keys being reconciled")
    informers: dict[str, InformerStatus] = Field(default_factory=dict)
    policies: list[str] | None = Field(default=None, description="Approval chain, in order")
    variant: SchemaVariant | None = Field(default=None, description="Registration request API in use")


class ControllersResponse(BaseModel):
    variant: SchemaVariant
    auto_approval_enabled: bool
    controllers: list[ControllerStatus]


class TaintView(BaseModel):
    key: str
    value: str = ""
    effect: str
    time_added: datetime | None = None


class ClusterAvailability(BaseModel):
    """Cached liveness view of one cluster."""

    name: str
    registration_state: RegistrationState
    availability: Availability
    taints: list[TaintView] = Field(default_factory=list)
    heartbeat_at: datetime | None = None

    @classmethod
    def from_cluster(cls, cluster: SpokeCluster, heartbeat_at: datetime | None) -> "ClusterAvailability":
        return cls(
            name=cluster.name,
            registration_state=cluster.registration_state,
            availability=cluster.availability,
            taints=[
                TaintView(
                    key=taint.key,
                    value=taint.value,
                    effect=taint.effect.value,
                    time_added=taint.time_added,
                )
                for taint in cluster.taints
            ],
            heartbeat_at=heartbeat_at,
        )


class ClusterAvailabilityList(BaseModel):
    items: list[ClusterAvailability]
    total: int
    by_availability: dict[str, int] = Field(default_factory=dict)
