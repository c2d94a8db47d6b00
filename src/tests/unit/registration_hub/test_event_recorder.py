"""Tests for the audit event recorder."""

from unittest.mock import AsyncMock

from hub_shared.models import Availability, EventType
from registration_hub.services.event_recorder import EventRecorder


class TestEventRecorder:
    async def test_publishes_event(self, recorder, mock_redis):
        event = await recorder.record(
            EventType.CLUSTER_TAINT_REMOVED,
            reason="TaintRemoved",
            message="removed",
            cluster_name="cluster1",
        )

        assert mock_redis.events == [event]
        assert event.payload["source"] == "registration-hub"

    async def test_availability_change_payload(self, recorder, mock_redis):
        await recorder.availability_changed(
            "cluster1", Availability.AVAILABLE, Availability.UNREACHABLE, 330.0
        )

        event = mock_redis.events[0]
        assert event.event_type == EventType.CLUSTER_AVAILABILITY_CHANGED
        assert event.payload["old_state"] == "Available"
        assert event.payload["new_state"] == "Unreachable"
        assert event.payload["heartbeat_age_seconds"] == 330.0

    async def test_csr_approved(self, recorder, mock_redis, request_factory):
        await recorder.csr_approved(request_factory(), "renewal", "ok")

        event = mock_redis.events[0]
        assert event.event_type == EventType.CSR_APPROVED
        assert event.object_name == "csr-cluster1"
        assert event.cluster_name == "cluster1"

    async def test_publish_failure_does_not_raise(self, mock_redis):
        mock_redis.publish_event = AsyncMock(side_effect=ConnectionError("redis down"))
        recorder = EventRecorder(mock_redis)

        event = await recorder.controller_error("csr", "key", RuntimeError("boom"))

        assert event.event_type == EventType.CONTROLLER_ERROR
        assert event.reason == "RuntimeError"

    async def test_without_redis(self):
        event = await EventRecorder().taint_removed("cluster1", "example.com/key")

        assert event.cluster_name == "cluster1"
