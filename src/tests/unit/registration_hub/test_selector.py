"""Tests for registration request API selection."""

import pytest
from kubernetes import client

from hub_shared.models import SchemaVariant
from registration_hub.csr.adapters import CurrentSchemaAdapter, LegacySchemaAdapter
from registration_hub.csr.selector import (
    choose_schema_variant,
    probe_csr_versions,
    select_request_adapter,
)
from registration_hub.errors import DiscoveryError, TransientIOError


def api_groups(*csr_versions: str) -> client.V1APIGroupList:
    groups = [
        client.V1APIGroup(
            name="apps",
            versions=[client.V1GroupVersionForDiscovery(group_version="apps/v1", version="v1")],
        )
    ]
    if csr_versions:
        groups.append(
            client.V1APIGroup(
                name="certificates.k8s.io",
                versions=[
                    client.V1GroupVersionForDiscovery(
                        group_version=f"certificates.k8s.io/{version}", version=version
                    )
                    for version in csr_versions
                ],
            )
        )
    return client.V1APIGroupList(groups=groups)


class TestChooseSchemaVariant:
    @pytest.mark.parametrize("legacy_supported", [True, False])
    @pytest.mark.parametrize("compat", [True, False])
    def test_prefers_current(self, legacy_supported, compat):
        assert choose_schema_variant(True, legacy_supported, compat) == SchemaVariant.CURRENT

    def test_legacy_when_enabled(self):
        assert choose_schema_variant(False, True, True) == SchemaVariant.LEGACY

    def test_legacy_disabled_fails(self):
        with pytest.raises(DiscoveryError):
            choose_schema_variant(False, True, False)

    def test_nothing_served_fails(self):
        with pytest.raises(DiscoveryError):
            choose_schema_variant(False, False, True)


class TestProbe:
    async def test_reports_served_versions(self, mock_kube):
        mock_kube.get_api_groups.return_value = api_groups("v1", "v1beta1")

        assert await probe_csr_versions(mock_kube) == (True, True)

    async def test_group_missing(self, mock_kube):
        mock_kube.get_api_groups.return_value = api_groups()

        assert await probe_csr_versions(mock_kube) == (False, False)

    async def test_discovery_failure_is_fatal(self, mock_kube):
        mock_kube.get_api_groups.side_effect = TransientIOError("discovery failed", status=503)

        with pytest.raises(DiscoveryError):
            await probe_csr_versions(mock_kube)


class TestSelectRequestAdapter:
    async def test_current_adapter(self, mock_kube):
        mock_kube.get_api_groups.return_value = api_groups("v1", "v1beta1")

        adapter = await select_request_adapter(mock_kube, legacy_compatibility=True)

        assert isinstance(adapter, CurrentSchemaAdapter)

    async def test_legacy_adapter(self, mock_kube):
        mock_kube.get_api_groups.return_value = api_groups("v1beta1")

        adapter = await select_request_adapter(mock_kube, legacy_compatibility=True)

        assert isinstance(adapter, LegacySchemaAdapter)
        assert adapter.variant == SchemaVariant.LEGACY

    async def test_legacy_only_without_compatibility(self, mock_kube):
        mock_kube.get_api_groups.return_value = api_groups("v1beta1")

        with pytest.raises(DiscoveryError):
            await select_request_adapter(mock_kube, legacy_compatibility=False)
