"""ManagedCluster and heartbeat lease access.

Decodes cluster and lease objects into snapshots and writes the two pieces
of cluster state the liveness controller owns: the availability condition
(status subresource) and the unreachable taint (spec). Both writes are
conditional on the snapshot's resource version.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

from hub_shared.models import (
    Availability,
    HeartbeatRecord,
    RegistrationState,
    SpokeCluster,
    Taint,
    TaintEffect,
)
from hub_shared.observability import get_logger

from ..clients.kube import KubeClient, format_timestamp, parse_timestamp
from ..errors import ConflictError, NotFoundError

logger = get_logger(__name__)

MANAGED_CLUSTERS_PATH = "/apis/cluster.open-cluster-management.io/v1/managedclusters"
LEASES_PATH = "/apis/coordination.k8s.io/v1/leases"

# Lease each spoke agent renews in its cluster namespace
LEASE_NAME = "managed-cluster-lease"

CONDITION_ACCEPTED = "HubAcceptedManagedCluster"
CONDITION_AVAILABLE = "ManagedClusterConditionAvailable"

# Availability -> (condition status, reason, message)
_AVAILABILITY_CONDITIONS = {
    Availability.AVAILABLE: (
        "True",
        "ManagedClusterAvailable",
        "Managed cluster is available",
    ),
    Availability.UNREACHABLE: (
        "Unknown",
        "ManagedClusterLeaseUpdateStopped",
        "Registration agent stopped updating its lease.",
    ),
    Availability.UNKNOWN: (
        "Unknown",
        "ManagedClusterStatusUnknown",
        "Managed cluster status is unknown",
    ),
}


def _find_condition(conditions: list[dict[str, Any]], kind: str) -> dict[str, Any] | None:
    for condition in conditions:
        if condition.get("type") == kind:
            return condition
    return None


def decode_taint(raw: dict[str, Any]) -> Taint | None:
    key = raw.get("key")
    if not key:
        return None
    try:
        effect = TaintEffect(raw.get("effect") or TaintEffect.NO_SELECT.value)
    except ValueError:
        effect = TaintEffect.NO_SELECT
    return Taint(
        key=key,
        value=raw.get("value") or "",
        effect=effect,
        time_added=parse_timestamp(raw.get("timeAdded")),
    )


def encode_taint(taint: Taint) -> dict[str, Any]:
    raw: dict[str, Any] = {"key": taint.key, "effect": taint.effect.value}
    if taint.value:
        raw["value"] = taint.value
    if taint.time_added:
        raw["timeAdded"] = format_timestamp(taint.time_added)
    return raw


def decode_cluster(raw: dict[str, Any]) -> SpokeCluster | None:
    """Decode a ManagedCluster object."""
    metadata = raw.get("metadata") or {}
    name = metadata.get("name")
    if not name:
        return None
    spec = raw.get("spec") or {}
    conditions = (raw.get("status") or {}).get("conditions") or []

    hub_accepts = bool(spec.get("hubAcceptsClient"))
    accepted = _find_condition(conditions, CONDITION_ACCEPTED)
    if hub_accepts and accepted and accepted.get("status") == "True":
        registration_state = RegistrationState.ACCEPTED
    elif accepted and accepted.get("status") == "False":
        registration_state = RegistrationState.REJECTED
    else:
        registration_state = RegistrationState.PENDING

    available = _find_condition(conditions, CONDITION_AVAILABLE)
    if available is None:
        availability = Availability.UNKNOWN
    elif available.get("status") == "True":
        availability = Availability.AVAILABLE
    else:
        availability = Availability.UNREACHABLE

    taints = tuple(
        taint for taint in (decode_taint(t) for t in spec.get("taints") or []) if taint is not None
    )

    return SpokeCluster(
        name=name,
        hub_accepts_client=hub_accepts,
        registration_state=registration_state,
        availability=availability,
        taints=taints,
        lease_duration_seconds=spec.get("leaseDurationSeconds") or None,
        resource_version=metadata.get("resourceVersion"),
    )


def decode_lease(raw: dict[str, Any]) -> HeartbeatRecord | None:
    """Decode a spoke heartbeat lease; the namespace names the cluster."""
    metadata = raw.get("metadata") or {}
    namespace = metadata.get("namespace")
    if not namespace or metadata.get("name") != LEASE_NAME:
        return None
    spec = raw.get("spec") or {}
    return HeartbeatRecord(
        cluster_name=namespace,
        renew_time=parse_timestamp(spec.get("renewTime")),
        lease_duration_seconds=spec.get("leaseDurationSeconds") or None,
        resource_version=metadata.get("resourceVersion"),
    )


def set_availability_condition(raw: dict[str, Any], availability: Availability, now: datetime) -> None:
    status, reason, message = _AVAILABILITY_CONDITIONS[availability]
    raw_status = raw["status"] = dict(raw.get("status") or {})
    conditions = [
        condition
        for condition in raw_status.get("conditions") or []
        if condition.get("type") != CONDITION_AVAILABLE
    ]
    conditions.append(
        {
            "type": CONDITION_AVAILABLE,
            "status": status,
            "reason": reason,
            "message": message,
            "lastTransitionTime": format_timestamp(now),
        }
    )
    raw_status["conditions"] = conditions


class ManagedClusterClient:
    """Reads and conditionally updates ManagedCluster objects."""

    def __init__(self, kube: KubeClient):
        self.kube = kube

    def list_function(self) -> Callable[..., Any]:
        return self.kube.list_function(MANAGED_CLUSTERS_PATH)

    def lease_list_function(self) -> Callable[..., Any]:
        return self.kube.list_function(LEASES_PATH, fieldSelector=f"metadata.name={LEASE_NAME}")

    @staticmethod
    def object_path(name: str) -> str:
        return f"{MANAGED_CLUSTERS_PATH}/{name}"

    async def get(self, name: str) -> SpokeCluster | None:
        """Read the current version of a cluster, None if it is gone."""
        try:
            raw = await self.kube.get(self.object_path(name))
        except NotFoundError:
            return None
        return decode_cluster(raw)

    async def _read_for_update(self, cluster: SpokeCluster) -> dict[str, Any]:
        raw = await self.kube.get(self.object_path(cluster.name))
        observed = (raw.get("metadata") or {}).get("resourceVersion")
        if cluster.resource_version and observed != cluster.resource_version:
            raise ConflictError(
                f"cluster {cluster.name!r} changed: {cluster.resource_version} -> {observed}"
            )
        return raw

    async def update_availability(
        self, cluster: SpokeCluster, availability: Availability, now: datetime
    ) -> SpokeCluster | None:
        """Write the availability condition through the status subresource.

        Raises:
            ConflictError: If the cluster changed since `cluster` was observed
            NotFoundError: If the cluster is gone
        """
        raw = await self._read_for_update(cluster)
        set_availability_condition(raw, availability, now)
        updated = await self.kube.put(f"{self.object_path(cluster.name)}/status", raw)
        return decode_cluster(updated)

    async def update_taints(self, cluster: SpokeCluster, taints: tuple[Taint, ...]) -> SpokeCluster | None:
        """Replace the cluster's taints.

        Raises:
            ConflictError: If the cluster changed since `cluster` was observed
            NotFoundError: If the cluster is gone
        """
        raw = await self._read_for_update(cluster)
        spec = raw["spec"] = dict(raw.get("spec") or {})
        spec["taints"] = [encode_taint(taint) for taint in taints]
        updated = await self.kube.put(self.object_path(cluster.name), raw)
        return decode_cluster(updated)
