"""Heartbeat staleness state machine.

Pure functions: given a cluster snapshot, its latest heartbeat and the
current time, work out the availability the cluster should have, whether
the unreachable taint must be added or removed, and when the cluster must
be looked at again.

    age <= T   -> Available, no unreachable taint
    age >  T   -> Unreachable, unreachable taint present

where T = staleness multiplier x the renewal interval R (the lease's, else
the cluster's, else the configured default).
Clusters that are not accepted, or have no heartbeat yet, are left alone.
"""

from dataclasses import dataclass
from datetime import datetime

from hub_shared.models import (
    TAINT_UNREACHABLE,
    Availability,
    HeartbeatRecord,
    SpokeCluster,
    Taint,
    TaintEffect,
)

from ..options import HubOptions


@dataclass(frozen=True)
class LivenessVerdict:
    """Desired liveness state of one cluster."""

    availability: Availability
    add_taint: bool = False
    remove_taint: bool = False
    requeue_after: float | None = None
    age_seconds: float | None = None

    def availability_changed(self, cluster: SpokeCluster) -> bool:
        return self.availability != cluster.availability

    @property
    def taint_changed(self) -> bool:
        return self.add_taint or self.remove_taint


def heartbeat_age(record: HeartbeatRecord, now: datetime) -> float | None:
    if record.renew_time is None:
        return None
    # Clock skew between spoke and hub never yields a negative age
    return max((now - record.renew_time).total_seconds(), 0.0)


def evaluate(
    cluster: SpokeCluster,
    record: HeartbeatRecord | None,
    now: datetime,
    options: HubOptions,
) -> LivenessVerdict:
    """Compute the desired liveness state of a cluster.

    Args:
        cluster: Current cluster snapshot
        record: Latest heartbeat of the cluster, if any
        now: Evaluation time (timezone aware)
        options: Hub options carrying the default interval and multiplier

    Returns:
        LivenessVerdict; equal to the current state when nothing must change
    """
    unchanged = LivenessVerdict(availability=cluster.availability)
    if not cluster.is_accepted or record is None:
        return unchanged

    age = heartbeat_age(record, now)
    if age is None:
        return unchanged

    interval = record.lease_duration_seconds or cluster.lease_duration_seconds
    threshold = options.staleness_threshold(interval)
    tainted = cluster.has_taint(TAINT_UNREACHABLE)

    if age > threshold:
        return LivenessVerdict(
            availability=Availability.UNREACHABLE,
            add_taint=not tainted,
            age_seconds=age,
        )
    return LivenessVerdict(
        availability=Availability.AVAILABLE,
        remove_taint=tainted,
        requeue_after=threshold - age,
        age_seconds=age,
    )


def unreachable_taint(now: datetime) -> Taint:
    return Taint(key=TAINT_UNREACHABLE, effect=TaintEffect.NO_SELECT, time_added=now)


def apply_taint(taints: tuple[Taint, ...], taint: Taint) -> tuple[Taint, ...]:
    """Add a taint unless one with the same key exists."""
    if any(existing.key == taint.key for existing in taints):
        return taints
    return (*taints, taint)


def remove_taint(taints: tuple[Taint, ...], key: str) -> tuple[Taint, ...]:
    """Drop every taint with the given key."""
    if not any(existing.key == key for existing in taints):
        return taints
    return tuple(existing for existing in taints if existing.key != key)
