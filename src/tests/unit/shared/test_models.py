"""Unit tests for Pydantic models."""

from datetime import datetime, timezone
from uuid import uuid4

import pytest
from pydantic import ValidationError

from hub_shared.models import (
    TAINT_UNREACHABLE,
    ApprovalDecision,
    ApprovalOutcome,
    Availability,
    DecisionState,
    Event,
    EventType,
    KeyUsage,
    RegistrationState,
    SpokeCluster,
    Taint,
    TaintEffect,
)


class TestRegistrationRequest:
    def test_pending_is_not_terminal(self, request_factory):
        assert not request_factory().is_terminal

    @pytest.mark.parametrize("state", [DecisionState.APPROVED, DecisionState.DENIED])
    def test_decided_is_terminal(self, request_factory, state):
        assert request_factory(state=state).is_terminal

    def test_snapshot_is_immutable(self, request_factory):
        request = request_factory()
        with pytest.raises(ValidationError):
            request.state = DecisionState.APPROVED

    def test_usages_accept_wire_values(self, request_factory):
        request = request_factory(usages=frozenset({"client auth", "digital signature"}))
        assert request.usages == frozenset({KeyUsage.CLIENT_AUTH, KeyUsage.DIGITAL_SIGNATURE})

    def test_unknown_usage_rejected(self, request_factory):
        with pytest.raises(ValidationError):
            request_factory(usages=frozenset({"teleportation"}))


class TestApprovalDecision:
    def test_constructors(self):
        assert ApprovalDecision.approve("renewal", "ok").outcome == ApprovalOutcome.APPROVE
        assert ApprovalDecision.deny("custom", "no").outcome == ApprovalOutcome.DENY
        assert ApprovalDecision.no_opinion("bootstrap").outcome == ApprovalOutcome.NO_OPINION

    def test_definitive(self):
        assert ApprovalDecision.approve("renewal", "ok").is_definitive
        assert ApprovalDecision.deny("custom", "no").is_definitive
        assert not ApprovalDecision.no_opinion("renewal", "unknown cluster").is_definitive


class TestSpokeCluster:
    def test_defaults(self):
        cluster = SpokeCluster(name="cluster1")

        assert cluster.registration_state == RegistrationState.PENDING
        assert cluster.availability == Availability.UNKNOWN
        assert cluster.taints == ()
        assert not cluster.is_accepted

    def test_has_taint(self, cluster_factory):
        cluster = cluster_factory(taints=(Taint(key=TAINT_UNREACHABLE),))

        assert cluster.has_taint(TAINT_UNREACHABLE)
        assert not cluster.has_taint("other")
        assert cluster.taints[0].effect == TaintEffect.NO_SELECT

    def test_lease_duration_must_be_positive(self):
        with pytest.raises(ValidationError):
            SpokeCluster(name="cluster1", lease_duration_seconds=0)


class TestEvent:
    def test_json_serialization(self):
        event = Event(
            event_id=uuid4(),
            event_type=EventType.CSR_APPROVED,
            reason="renewal",
            message="approved",
            cluster_name="cluster1",
            timestamp=datetime(2024, 6, 1, tzinfo=timezone.utc),
        )

        payload = event.model_dump_json()

        assert '"event_type":"CSR_APPROVED"' in payload
        assert '"cluster_name":"cluster1"' in payload
