"""Startup selection of the registration request API."""

from __future__ import annotations

from hub_shared.models import SchemaVariant
from hub_shared.observability import get_logger

from ..clients.kube import KubeClient
from ..errors import DiscoveryError, RegistrationHubError
from .adapters import ADAPTERS, RequestAdapter

logger = get_logger(__name__)

CSR_API_GROUP = "certificates.k8s.io"


async def probe_csr_versions(kube: KubeClient) -> tuple[bool, bool]:
    """Ask discovery which request schemas the hub serves.

    Returns:
        (current supported, legacy supported)

    Raises:
        DiscoveryError: If discovery itself failed
    """
    try:
        groups = await kube.get_api_groups()
    except RegistrationHubError as e:
        raise DiscoveryError(f"API discovery failed: {e}") from e

    for group in groups.groups or []:
        if group.name == CSR_API_GROUP:
            versions = {version.version for version in group.versions or []}
            return SchemaVariant.CURRENT.value in versions, SchemaVariant.LEGACY.value in versions
    return False, False


def choose_schema_variant(
    current_supported: bool, legacy_supported: bool, legacy_compatibility: bool
) -> SchemaVariant:
    """Prefer the current schema; fall back to legacy only when enabled."""
    if current_supported:
        return SchemaVariant.CURRENT
    if legacy_supported and legacy_compatibility:
        return SchemaVariant.LEGACY
    if legacy_supported:
        raise DiscoveryError(
            f"{CSR_API_GROUP}/v1 is not served and legacy v1beta1 compatibility is disabled"
        )
    raise DiscoveryError(f"{CSR_API_GROUP} is not served by the hub")


async def select_request_adapter(kube: KubeClient, legacy_compatibility: bool) -> RequestAdapter:
    """Pick the request schema once at startup and build its adapter.

    Raises:
        DiscoveryError: If no usable schema is served; fatal for the process
    """
    current, legacy = await probe_csr_versions(kube)
    variant = choose_schema_variant(current, legacy, legacy_compatibility)
    logger.info(
        "Registration request API selected",
        variant=variant.value,
        current_served=current,
        legacy_served=legacy,
    )
    return ADAPTERS[variant](kube)
