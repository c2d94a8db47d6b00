"""Tests for the registration request schema adapters."""

from datetime import datetime, timezone

import pytest

from hub_shared.models import (
    ApprovalDecision,
    DecisionState,
    KeyUsage,
    SchemaVariant,
)
from registration_hub.csr.adapters import (
    APPROVAL_REASON,
    CurrentSchemaAdapter,
    LegacySchemaAdapter,
)
from registration_hub.errors import ConflictError, NotFoundError

WRITE_TIME = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def current(mock_kube):
    return CurrentSchemaAdapter(mock_kube)


@pytest.fixture
def legacy(mock_kube):
    return LegacySchemaAdapter(mock_kube)


class TestDecode:
    def test_decodes_subject_and_claims(self, current, raw_csr_factory):
        request = current.decode(raw_csr_factory())

        assert request.name == "csr-cluster1"
        assert request.variant == SchemaVariant.CURRENT
        assert request.requester == "system:open-cluster-management:cluster1:agent1"
        assert request.common_name == "system:open-cluster-management:cluster1:agent1"
        assert set(request.organizations) == {
            "system:open-cluster-management:cluster1",
            "system:open-cluster-management:managed-clusters",
        }
        assert request.cluster_name == "cluster1"
        assert request.signer_name == "kubernetes.io/kube-apiserver-client"
        assert KeyUsage.CLIENT_AUTH in request.usages
        assert request.state == DecisionState.PENDING
        assert request.resource_version == "100"
        assert request.created_at == datetime(2024, 6, 1, 11, 59, tzinfo=timezone.utc)
        assert request.request.startswith(b"-----BEGIN CERTIFICATE REQUEST-----")

    def test_current_schema_missing_signer_never_matches(self, current, raw_csr_factory):
        request = current.decode(raw_csr_factory(signer_name=None))

        assert request.signer_name == ""

    def test_legacy_schema_signer_optional(self, legacy, raw_csr_factory):
        request = legacy.decode(raw_csr_factory(signer_name=None))

        assert request.variant == SchemaVariant.LEGACY
        assert request.signer_name is None

    def test_approved_condition(self, current, raw_csr_factory):
        raw = raw_csr_factory(conditions=[{"type": "Approved", "status": "True"}])

        assert current.decode(raw).state == DecisionState.APPROVED

    def test_denied_wins(self, current, raw_csr_factory):
        raw = raw_csr_factory(
            conditions=[
                {"type": "Approved", "status": "True"},
                {"type": "Failed", "status": "True"},
            ]
        )

        assert current.decode(raw).state == DecisionState.DENIED

    def test_legacy_condition_without_status(self, legacy, raw_csr_factory):
        raw = raw_csr_factory(conditions=[{"type": "Denied", "reason": "Manual"}])

        assert legacy.decode(raw).state == DecisionState.DENIED

    def test_unknown_usage_is_skipped(self, current, raw_csr_factory):
        assert current.decode(raw_csr_factory(usages=["client auth", "bogus"])) is None

    def test_malformed_payload_is_skipped(self, current, raw_csr_factory):
        raw = raw_csr_factory()
        raw["spec"]["request"] = "%%% not base64 %%%"

        assert current.decode(raw) is None

    def test_unparsable_pem_yields_empty_claims(self, current, raw_csr_factory):
        raw = raw_csr_factory()
        raw["spec"]["request"] = "bm90IGEgcGVt"

        request = current.decode(raw)

        assert request.organizations == ()
        assert request.common_name == ""


class TestWriteDecision:
    async def test_appends_condition_on_approval_subresource(
        self, current, mock_kube, raw_csr_factory
    ):
        raw = raw_csr_factory()
        mock_kube.get.return_value = raw
        mock_kube.put.side_effect = lambda path, body: body
        request = current.decode(raw)

        updated = await current.write_decision(
            request, ApprovalDecision.approve("renewal", "ok"), now=WRITE_TIME
        )

        path, body = mock_kube.put.call_args.args
        assert path == "/apis/certificates.k8s.io/v1/certificatesigningrequests/csr-cluster1/approval"
        assert body["metadata"]["resourceVersion"] == "100"
        assert body["status"]["conditions"] == [
            {
                "type": "Approved",
                "status": "True",
                "reason": APPROVAL_REASON,
                "message": "ok",
                "lastUpdateTime": "2024-06-01T12:00:00Z",
                "lastTransitionTime": "2024-06-01T12:00:00Z",
            }
        ]
        assert updated.state == DecisionState.APPROVED

    async def test_legacy_condition_shape(self, legacy, mock_kube, raw_csr_factory):
        raw = raw_csr_factory(signer_name=None)
        mock_kube.get.return_value = raw
        mock_kube.put.side_effect = lambda path, body: body

        await legacy.write_decision(
            legacy.decode(raw), ApprovalDecision.approve("bootstrap", "ok"), now=WRITE_TIME
        )

        path, body = mock_kube.put.call_args.args
        assert path.startswith("/apis/certificates.k8s.io/v1beta1/")
        assert body["status"]["conditions"][0] == {
            "type": "Approved",
            "status": "True",
            "reason": APPROVAL_REASON,
            "message": "ok",
            "lastUpdateTime": "2024-06-01T12:00:00Z",
        }

    async def test_stale_version_conflicts_without_write(self, current, mock_kube, raw_csr_factory):
        request = current.decode(raw_csr_factory(resource_version="100"))
        mock_kube.get.return_value = raw_csr_factory(resource_version="101")

        with pytest.raises(ConflictError):
            await current.write_decision(request, ApprovalDecision.approve("renewal", "ok"))

        mock_kube.put.assert_not_called()

    async def test_terminal_request_is_not_rewritten(self, current, mock_kube, raw_csr_factory):
        request = current.decode(raw_csr_factory())
        mock_kube.get.return_value = raw_csr_factory(
            conditions=[{"type": "Denied", "status": "True"}]
        )

        with pytest.raises(ConflictError):
            await current.write_decision(request, ApprovalDecision.approve("renewal", "ok"))

        mock_kube.put.assert_not_called()

    async def test_get_returns_none_when_gone(self, current, mock_kube):
        mock_kube.get.side_effect = NotFoundError("gone")

        assert await current.get("csr-cluster1") is None
