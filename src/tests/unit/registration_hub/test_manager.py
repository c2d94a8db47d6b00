"""Tests for controller wiring and the controller manager."""

import asyncio
from unittest.mock import MagicMock

from hub_shared.models import SchemaVariant
from registration_hub.csr.adapters import CurrentSchemaAdapter
from registration_hub.main import build_manager
from registration_hub.options import HubOptions
from registration_hub.runtime import Controller, ControllerManager, EventHandler, Informer


class RecordingController(Controller):
    def __init__(self, informers, recorder):
        super().__init__("recording", informers, recorder, workers=1, drain_timeout=1)
        self.seen = []

    async def reconcile(self, key):
        self.seen.append(key)


def listing(*names):
    return {
        "metadata": {"resourceVersion": "1"},
        "items": [{"metadata": {"name": name, "resourceVersion": "1"}} for name in names],
    }


class StaticInformer(Informer):
    """Informer that lists once and never watches."""

    async def run(self):
        await self.sync()
        await asyncio.Event().wait()


class TestControllerManager:
    async def test_runs_workers_after_sync_and_stops(self, recorder):
        informer = StaticInformer(
            "things",
            MagicMock(return_value=listing("a", "b")),
            lambda raw: raw["metadata"]["name"],
            key_fn=lambda name: name,
        )
        controller = RecordingController([informer], recorder)
        informer.add_handler(EventHandler(on_upsert=lambda old, new: controller.queue.add(new)))
        manager = ControllerManager([informer], [controller])

        manager.start()
        for _ in range(100):
            if len(controller.seen) == 2:
                break
            await asyncio.sleep(0.01)
        await manager.stop()

        assert sorted(controller.seen) == ["a", "b"]
        assert manager.synced
        assert controller.queue.shutting_down


class TestBuildManager:
    def test_wires_shared_cluster_informer(self, mock_kube, recorder):
        options = HubOptions(auto_approval_enabled=True, bootstrap_allow_list=("bootstrap-sa",))
        adapter = CurrentSchemaAdapter(mock_kube)

        manager, informers = build_manager(mock_kube, adapter, recorder, options)

        approving, liveness = manager.controllers
        assert approving.policy_names == ["renewal", "bootstrap"]
        assert informers["clusters"] in approving.informers
        assert informers["clusters"] in liveness.informers
        assert informers["requests"].name == f"certificatesigningrequests.{SchemaVariant.CURRENT.value}"
        assert len(manager.informers) == 3
