"""Controller status and cluster availability endpoints."""

from __future__ import annotations

from collections import Counter

from fastapi import APIRouter, HTTPException, Query, Request

from hub_shared.models import Availability

from ..schemas import ClusterAvailability, ClusterAvailabilityList, ControllersResponse

router = APIRouter()


def _manager(request: Request):
    manager = getattr(request.app.state, "manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="Controllers are not running")
    return manager


@router.get(
    "/controllers",
    response_model=ControllersResponse,
    summary="Controller status",
    description="Request API in use, active approval policies and queue depths.",
)
async def get_controllers(request: Request):
    manager = _manager(request)
    options = request.app.state.options
    return ControllersResponse(
        variant=request.app.state.adapter.variant,
        auto_approval_enabled=options.auto_approval_enabled,
        controllers=manager.status(),
    )


@router.get(
    "/clusters/availability",
    response_model=ClusterAvailabilityList,
    summary="Cluster availability",
    description="Cached availability and taints of every known cluster.",
)
async def get_cluster_availability(
    request: Request,
    availability: Availability | None = Query(default=None, description="Only clusters in this state"),
):
    """List cluster availability from the informer caches.

    Args:
        availability: Optional availability filter

    Returns:
        Clusters sorted by name with a count per availability
    """
    _manager(request)
    clusters = request.app.state.cluster_informer
    leases = request.app.state.lease_informer

    items = []
    for cluster in sorted(clusters.list(), key=lambda c: c.name):
        if availability is not None and cluster.availability != availability:
            continue
        record = leases.get(cluster.name)
        items.append(
            ClusterAvailability.from_cluster(cluster, record.renew_time if record else None)
        )

    counts = Counter(item.availability.value for item in items)
    return ClusterAvailabilityList(items=items, total=len(items), by_availability=dict(counts))
