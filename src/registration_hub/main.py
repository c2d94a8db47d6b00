"""Registration Hub FastAPI Application.

The registration hub runs two controllers against the hub API server:
- Approval of spoke registration (certificate signing) requests
- Spoke liveness: availability condition and unreachable taint from heartbeats

The HTTP surface only reports on them: health, readiness, controller
status and cached cluster availability.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from hub_shared.config import RegistrationHubSettings
from hub_shared.observability import get_logger, setup_logging
from hub_shared.redis_client import RedisClient

from .api import controllers, health
from .clients import KubeClient
from .csr import CSRApprovingController, RequestAdapter, SubjectAccessReviewer, build_policy_chain
from .csr.selector import select_request_adapter
from .errors import DiscoveryError
from .liveness import HeartbeatController, ManagedClusterClient, decode_cluster, decode_lease
from .options import HubOptions
from .runtime import ControllerManager, Informer
from .services import EventRecorder

settings = RegistrationHubSettings()
setup_logging(log_level=settings.log_level, log_format=settings.log_format)
logger = get_logger(__name__)


def build_manager(
    kube: KubeClient,
    adapter: RequestAdapter,
    recorder: EventRecorder,
    options: HubOptions,
    watch_timeout_seconds: int = 300,
) -> tuple[ControllerManager, dict[str, Informer]]:
    """Wire informers and controllers.

    The cluster cache is shared: the liveness controller reconciles it and
    the renewal policy reads it.

    Returns:
        The manager and the informers by role (clusters, leases, requests)
    """
    cluster_client = ManagedClusterClient(kube)

    cluster_informer = Informer(
        "managedclusters",
        cluster_client.list_function(),
        decode_cluster,
        key_fn=lambda cluster: cluster.name,
        watch_timeout_seconds=watch_timeout_seconds,
        resync_period=options.liveness_resync_seconds,
    )
    lease_informer = Informer(
        "leases",
        cluster_client.lease_list_function(),
        decode_lease,
        key_fn=lambda record: record.cluster_name,
        watch_timeout_seconds=watch_timeout_seconds,
    )
    request_informer = Informer(
        f"certificatesigningrequests.{adapter.variant.value}",
        adapter.list_function(),
        adapter.decode,
        key_fn=lambda request: request.name,
        watch_timeout_seconds=watch_timeout_seconds,
        resync_period=options.resync_interval_seconds,
    )

    policies = build_policy_chain(options, cluster_informer, SubjectAccessReviewer(kube))
    approving = CSRApprovingController(
        adapter,
        request_informer,
        policies,
        recorder,
        options,
        extra_informers=[cluster_informer],
    )
    liveness = HeartbeatController(
        cluster_client,
        cluster_informer,
        lease_informer,
        recorder,
        options,
    )

    informers = {
        "clusters": cluster_informer,
        "leases": lease_informer,
        "requests": request_informer,
    }
    manager = ControllerManager(list(informers.values()), [approving, liveness])
    return manager, informers


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown of:
    - Redis connections
    - Hub API client and request API selection
    - Informers and controllers
    """
    logger.info("Starting Registration Hub service", version=settings.app_version)

    options = HubOptions.from_settings(settings)
    app.state.options = options

    # Initialize Redis
    redis_client = RedisClient(settings.redis.url)
    await redis_client.connect()
    app.state.redis = redis_client

    kube = KubeClient(settings.kube)
    recorder = EventRecorder(redis_client)

    try:
        adapter = await select_request_adapter(kube, options.legacy_csr_compatibility)
    except DiscoveryError as e:
        logger.error("Registration request API selection failed", error=str(e))
        kube.close()
        await redis_client.close()
        raise
    app.state.adapter = adapter

    manager, informers = build_manager(
        kube, adapter, recorder, options, settings.kube.watch_timeout_seconds
    )
    app.state.manager = manager
    app.state.cluster_informer = informers["clusters"]
    app.state.lease_informer = informers["leases"]
    manager.start()

    logger.info(
        "Registration Hub service started successfully",
        variant=adapter.variant.value,
        auto_approval=options.auto_approval_enabled,
    )

    yield

    # Shutdown
    logger.info("Shutting down Registration Hub service")
    await manager.stop()
    kube.close()
    await redis_client.close()
    logger.info("Registration Hub service shutdown complete")


app = FastAPI(
    title="Registration Hub Service",
    description="Hub-side approval of spoke registration requests and spoke liveness tracking",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Include routers
app.include_router(controllers.router, prefix="/api/v1", tags=["Controllers"])
app.include_router(health.router, tags=["Health"])


@app.get("/")
async def root():
    """Root endpoint with service info."""
    return {
        "service": "registration-hub",
        "version": settings.app_version,
        "docs": "/docs",
    }


def run() -> None:
    import uvicorn

    uvicorn.run(
        "registration_hub.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )
