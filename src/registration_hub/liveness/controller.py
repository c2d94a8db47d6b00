"""Cluster liveness controller.

Follows spoke heartbeat leases and cluster objects, and keeps each accepted
cluster's availability condition and unreachable taint in line with how
fresh its heartbeat is. Available clusters are looked at again right when
their heartbeat would turn stale.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

from hub_shared.models import TAINT_UNREACHABLE, HeartbeatRecord, SpokeCluster
from hub_shared.observability import get_logger

from ..errors import ConflictError, NotFoundError
from ..options import HubOptions
from ..runtime import Controller, EventHandler, Informer
from ..services.event_recorder import EventRecorder
from .resources import ManagedClusterClient
from .state_machine import apply_taint, evaluate, remove_taint, unreachable_taint

logger = get_logger(__name__)

CONTROLLER_NAME = "cluster-liveness-controller"

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class HeartbeatController(Controller):
    """Marks clusters Unreachable (and taints them) when heartbeats stop."""

    def __init__(
        self,
        clusters_client: ManagedClusterClient,
        clusters: Informer[SpokeCluster],
        leases: Informer[HeartbeatRecord],
        recorder: EventRecorder,
        options: HubOptions,
        clock: Clock = utc_now,
    ):
        super().__init__(
            CONTROLLER_NAME,
            informers=[clusters, leases],
            recorder=recorder,
            workers=options.workers,
            drain_timeout=options.shutdown_drain_seconds,
        )
        self.clusters_client = clusters_client
        self.clusters = clusters
        self.leases = leases
        self.options = options
        self.clock = clock
        self.retry_attempts = options.conflict_retry_attempts

        clusters.add_handler(
            EventHandler(on_upsert=self._on_cluster_upsert, on_delete=self._on_cluster_delete)
        )
        leases.add_handler(
            EventHandler(on_upsert=self._on_lease_upsert, on_delete=self._on_lease_delete)
        )

    # =========================================================================
    # Event handlers
    # =========================================================================

    def _on_cluster_upsert(self, old: SpokeCluster | None, new: SpokeCluster) -> None:
        self.queue.add(new.name)

    def _on_cluster_delete(self, cluster: SpokeCluster) -> None:
        self.queue.discard(cluster.name)

    def _on_lease_upsert(self, old: HeartbeatRecord | None, new: HeartbeatRecord) -> None:
        if old is not None and old.renew_time == new.renew_time and old is not new:
            return
        self.queue.add(new.cluster_name)

    def _on_lease_delete(self, record: HeartbeatRecord) -> None:
        self.queue.add(record.cluster_name)

    # =========================================================================
    # Reconcile
    # =========================================================================

    async def reconcile(self, key: str) -> None:
        cluster = self.clusters.get(key)
        if cluster is None:
            return

        for attempt in range(1, self.retry_attempts + 1):
            try:
                requeue_after = await self._sync_cluster(cluster)
            except NotFoundError:
                logger.info("Cluster removed during reconcile")
                return
            except ConflictError:
                if attempt == self.retry_attempts:
                    raise
                fresh = await self.clusters_client.get(key)
                if fresh is None:
                    return
                cluster = fresh
                continue

            if requeue_after is not None:
                self.queue.add_after(key, requeue_after)
            return

    async def _sync_cluster(self, cluster: SpokeCluster) -> float | None:
        """Write whatever the state machine asks for. Returns the re-check delay."""
        now = self.clock()
        record = self.leases.get(cluster.name)
        verdict = evaluate(cluster, record, now, self.options)

        if verdict.availability_changed(cluster):
            updated = await self.clusters_client.update_availability(cluster, verdict.availability, now)
            logger.info(
                "Cluster availability updated",
                old=cluster.availability.value,
                new=verdict.availability.value,
                heartbeat_age=verdict.age_seconds,
            )
            await self.recorder.availability_changed(
                cluster.name, cluster.availability, verdict.availability, verdict.age_seconds
            )
            if updated is not None:
                cluster = updated
                self.clusters.store(updated)

        if verdict.add_taint:
            taint = unreachable_taint(now)
            taints = apply_taint(cluster.taints, taint)
            if taints != cluster.taints:
                updated = await self.clusters_client.update_taints(cluster, taints)
                await self.recorder.taint_added(cluster.name, taint)
                if updated is not None:
                    self.clusters.store(updated)
        elif verdict.remove_taint:
            taints = remove_taint(cluster.taints, TAINT_UNREACHABLE)
            if taints != cluster.taints:
                updated = await self.clusters_client.update_taints(cluster, taints)
                await self.recorder.taint_removed(cluster.name, TAINT_UNREACHABLE)
                if updated is not None:
                    self.clusters.store(updated)

        return verdict.requeue_after
