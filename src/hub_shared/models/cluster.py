"""Spoke cluster domain models."""

from datetime import datetime
from enum import Enum

from pydantic import Field

from .base import SnapshotModel

# Taint that keeps placement away from a cluster whose agent stopped heartbeating
TAINT_UNREACHABLE = "cluster.open-cluster-management.io/unreachable"


class RegistrationState(str, Enum):
    """Whether the hub accepted the spoke's registration."""

    PENDING = "Pending"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"


class Availability(str, Enum):
    """Liveness of an accepted spoke, owned by the liveness controller."""

    UNKNOWN = "Unknown"
    AVAILABLE = "Available"
    UNREACHABLE = "Unreachable"


class TaintEffect(str, Enum):
    """Effect of a taint on placement."""

    NO_SELECT = "NoSelect"
    PREFER_NO_SELECT = "PreferNoSelect"


class Taint(SnapshotModel):
    """Placement exclusion marker. Unique by key within a cluster."""

    key: str
    value: str = ""
    effect: TaintEffect = TaintEffect.NO_SELECT
    time_added: datetime | None = None


class SpokeCluster(SnapshotModel):
    """A managed cluster registered with the hub."""

    name: str
    hub_accepts_client: bool = False
    registration_state: RegistrationState = RegistrationState.PENDING
    availability: Availability = Availability.UNKNOWN
    taints: tuple[Taint, ...] = ()
    lease_duration_seconds: int | None = Field(default=None, gt=0)
    resource_version: str | None = None

    @property
    def is_accepted(self) -> bool:
        return self.registration_state == RegistrationState.ACCEPTED

    def has_taint(self, key: str) -> bool:
        return any(taint.key == key for taint in self.taints)


class HeartbeatRecord(SnapshotModel):
    """Periodically renewed lease proving a spoke agent is alive."""

    cluster_name: str
    renew_time: datetime | None = None
    lease_duration_seconds: int | None = Field(default=None, gt=0)
    resource_version: str | None = None
