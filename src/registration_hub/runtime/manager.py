"""Runs shared informers and the controllers built on them."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any

from hub_shared.observability import get_logger

from .controller import Controller
from .informer import Informer

logger = get_logger(__name__)


class ControllerManager:
    """Starts every informer once and every controller on top of them.

    Stopping sets a shared stop event; controllers drain their queues, then
    the informers are cancelled.
    """

    def __init__(self, informers: list[Informer[Any]], controllers: list[Controller]):
        self.informers = informers
        self.controllers = controllers
        self._stop = asyncio.Event()
        self._informer_tasks: list[asyncio.Task[None]] = []
        self._controller_tasks: list[asyncio.Task[None]] = []

    @property
    def started(self) -> bool:
        return bool(self._controller_tasks)

    @property
    def synced(self) -> bool:
        return all(informer.has_synced for informer in self.informers)

    def start(self) -> None:
        self._informer_tasks = [
            asyncio.create_task(informer.run(), name=f"informer-{informer.name}")
            for informer in self.informers
        ]
        self._controller_tasks = [
            asyncio.create_task(controller.run(self._stop), name=controller.name)
            for controller in self.controllers
        ]
        for task in self._controller_tasks:
            task.add_done_callback(self._on_controller_exit)
        logger.info(
            "Controllers started",
            controllers=[c.name for c in self.controllers],
            informers=[i.name for i in self.informers],
        )

    def _on_controller_exit(self, task: asyncio.Task[None]) -> None:
        if task.cancelled() or self._stop.is_set():
            return
        error = task.exception()
        logger.error("Controller exited unexpectedly", controller=task.get_name(), error=str(error))

    async def stop(self) -> None:
        """Signal shutdown and wait for controllers to drain."""
        self._stop.set()
        if self._controller_tasks:
            await asyncio.gather(*self._controller_tasks, return_exceptions=True)
        for task in self._informer_tasks:
            task.cancel()
        for task in self._informer_tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._controller_tasks = []
        self._informer_tasks = []
        logger.info("Controllers stopped")

    def status(self) -> list[dict[str, Any]]:
        return [controller.status() for controller in self.controllers]
