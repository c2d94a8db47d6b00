"""Pytest configuration and shared fixtures."""

import base64
import os
from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

# Set test environment before importing settings
os.environ["ENV"] = "development"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["LOG_FORMAT"] = "text"

from hub_shared.models import (  # noqa: E402
    CLUSTER_NAME_LABEL,
    Availability,
    KeyUsage,
    RegistrationRequest,
    RegistrationState,
    SchemaVariant,
    SpokeCluster,
)
from registration_hub.options import HubOptions  # noqa: E402
from registration_hub.services.event_recorder import EventRecorder  # noqa: E402

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

_KEY = ec.generate_private_key(ec.SECP256R1())


def make_csr_pem(common_name: str, organizations: list[str]) -> bytes:
    """Build a real PEM certificate request with the given subject."""
    attributes = [x509.NameAttribute(NameOID.ORGANIZATION_NAME, org) for org in organizations]
    attributes.append(x509.NameAttribute(NameOID.COMMON_NAME, common_name))
    csr = (
        x509.CertificateSigningRequestBuilder()
        .subject_name(x509.Name(attributes))
        .sign(_KEY, hashes.SHA256())
    )
    return csr.public_bytes(serialization.Encoding.PEM)


def make_raw_csr(
    name: str = "csr-cluster1",
    username: str = "system:open-cluster-management:cluster1:agent1",
    common_name: str = "system:open-cluster-management:cluster1:agent1",
    organizations: list[str] | None = None,
    usages: list[str] | None = None,
    cluster_name: str | None = "cluster1",
    signer_name: str | None = "kubernetes.io/kube-apiserver-client",
    conditions: list[dict[str, Any]] | None = None,
    resource_version: str = "100",
) -> dict[str, Any]:
    """Raw certificate signing request object as served by the API server."""
    if organizations is None:
        organizations = [
            "system:open-cluster-management:cluster1",
            "system:open-cluster-management:managed-clusters",
        ]
    pem = make_csr_pem(common_name, organizations)
    labels = {CLUSTER_NAME_LABEL: cluster_name} if cluster_name else {}
    spec: dict[str, Any] = {
        "request": base64.b64encode(pem).decode(),
        "username": username,
        "groups": ["system:authenticated"],
        "usages": usages if usages is not None else ["digital signature", "key encipherment", "client auth"],
    }
    if signer_name is not None:
        spec["signerName"] = signer_name
    raw: dict[str, Any] = {
        "metadata": {
            "name": name,
            "labels": labels,
            "resourceVersion": resource_version,
            "creationTimestamp": "2024-06-01T11:59:00Z",
        },
        "spec": spec,
    }
    if conditions is not None:
        raw["status"] = {"conditions": conditions}
    return raw


def make_request(**overrides: Any) -> RegistrationRequest:
    """Decoded registration request for a renewing agent of cluster1."""
    fields: dict[str, Any] = {
        "name": "csr-cluster1",
        "variant": SchemaVariant.CURRENT,
        "requester": "system:open-cluster-management:cluster1:agent1",
        "groups": ("system:authenticated",),
        "usages": frozenset({KeyUsage.DIGITAL_SIGNATURE, KeyUsage.KEY_ENCIPHERMENT, KeyUsage.CLIENT_AUTH}),
        "organizations": (
            "system:open-cluster-management:cluster1",
            "system:open-cluster-management:managed-clusters",
        ),
        "common_name": "system:open-cluster-management:cluster1:agent1",
        "cluster_name": "cluster1",
        "signer_name": "kubernetes.io/kube-apiserver-client",
        "resource_version": "100",
    }
    fields.update(overrides)
    return RegistrationRequest(**fields)


def make_cluster(**overrides: Any) -> SpokeCluster:
    fields: dict[str, Any] = {
        "name": "cluster1",
        "hub_accepts_client": True,
        "registration_state": RegistrationState.ACCEPTED,
        "availability": Availability.AVAILABLE,
        "lease_duration_seconds": 60,
        "resource_version": "10",
    }
    fields.update(overrides)
    return SpokeCluster(**fields)


class MockRedisClient:
    """Mock Redis client for testing."""

    def __init__(self):
        self.events = []
        self.healthy = True

    async def connect(self):
        pass

    async def close(self):
        pass

    async def publish_event(self, event):
        self.events.append(event)
        return 1

    async def health_check(self):
        return {"status": "healthy" if self.healthy else "unhealthy"}


@pytest.fixture
def mock_redis():
    """Create mock Redis client."""
    return MockRedisClient()


@pytest.fixture
def recorder(mock_redis):
    return EventRecorder(mock_redis)


@pytest.fixture
def options():
    return HubOptions(conflict_retry_attempts=3, workers=1)


@pytest.fixture
def mock_kube():
    """KubeClient double with async REST calls."""
    kube = MagicMock()
    kube.get = AsyncMock()
    kube.put = AsyncMock()
    kube.get_api_groups = AsyncMock()
    kube.create_subject_access_review = AsyncMock()
    return kube


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def request_factory():
    return make_request


@pytest.fixture
def raw_csr_factory():
    return make_raw_csr


@pytest.fixture
def cluster_factory():
    return make_cluster
