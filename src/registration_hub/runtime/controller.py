"""Worker-pool controller driven by a work queue.

A controller owns one queue and N workers. Keys arrive from informer
handlers, resync and delayed re-adds. Each key is reconciled by exactly one
worker at a time; a failing key is logged, recorded and re-offered with
backoff while the rest of the controller keeps running.
"""

from __future__ import annotations

import asyncio
import contextlib
from abc import ABC, abstractmethod
from typing import Any

from hub_shared.observability import ReconcileContext, get_logger

from ..errors import ConflictError, TransientIOError
from ..services.event_recorder import EventRecorder
from .informer import Informer
from .workqueue import WorkQueue

logger = get_logger(__name__)


class Controller(ABC):
    """Base class for queue-driven reconcilers."""

    def __init__(
        self,
        name: str,
        informers: list[Informer[Any]],
        recorder: EventRecorder,
        workers: int = 1,
        drain_timeout: float = 10.0,
        sync_timeout: float | None = None,
    ):
        self.name = name
        self.queue = WorkQueue(name)
        self.informers = informers
        self.recorder = recorder
        self.workers = workers
        self.drain_timeout = drain_timeout
        self.sync_timeout = sync_timeout

    @abstractmethod
    async def reconcile(self, key: str) -> None:
        """Bring the object named by `key` to its desired state.

        Raising re-offers the key with backoff.
        """

    async def process_next(self) -> bool:
        """Reconcile one key. Returns False once the queue is shut down."""
        key = await self.queue.get()
        if key is None:
            return False

        with ReconcileContext(controller=self.name, key=key):
            try:
                await self.reconcile(key)
            except (ConflictError, TransientIOError) as e:
                delay = self.queue.add_rate_limited(key)
                logger.warning("Reconcile failed, requeued", error=str(e), retry_in=delay)
            except Exception as e:
                delay = self.queue.add_rate_limited(key)
                logger.exception("Unexpected reconcile error, requeued", retry_in=delay)
                await self.recorder.controller_error(self.name, key, e)
            else:
                self.queue.forget(key)
            finally:
                self.queue.done(key)
        return True

    async def _worker(self, index: int) -> None:
        while await self.process_next():
            pass
        logger.debug("Worker stopped", controller=self.name, worker=index)

    async def run(self, stop: asyncio.Event) -> None:
        """Run workers until `stop` is set.

        Informers are shared between controllers and started by the caller;
        workers start once every informer has synced.
        """
        worker_tasks: list[asyncio.Task[None]] = []
        try:
            for informer in self.informers:
                if not await informer.wait_for_sync(self.sync_timeout):
                    logger.warning("Informer not synced, starting anyway", collection=informer.name)
            logger.info("Controller started", controller=self.name, workers=self.workers)

            worker_tasks = [
                asyncio.create_task(self._worker(i)) for i in range(self.workers)
            ]
            await stop.wait()
        finally:
            logger.info("Controller stopping", controller=self.name)
            await self.queue.shut_down_with_drain(self.drain_timeout)
            for task in worker_tasks:
                task.cancel()
            for task in worker_tasks:
                with contextlib.suppress(asyncio.CancelledError):
                    await task
            logger.info("Controller stopped", controller=self.name)

    def status(self) -> dict[str, Any]:
        """Queue and cache figures for the status API."""
        return {
            "name": self.name,
            "workers": self.workers,
            "queue_depth": len(self.queue),
            "in_flight": self.queue.processing,
            "informers": {
                informer.name: {"synced": informer.has_synced, "items": len(informer)}
                for informer in self.informers
            },
        }
