"""List/watch mirror of a hub collection.

The informer lists a collection, then follows a watch stream from the
listed resource version. Each object is decoded into an immutable snapshot
and stored by key; registered handlers hear about every change and, on the
resync period, about every cached object again. A 410 Gone or any stream
failure falls back to a fresh list.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from kubernetes import watch
from kubernetes.client.rest import ApiException
from pydantic import ValidationError

from hub_shared.observability import get_logger

from ..clients.kube import translate_api_error

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class EventHandler(Generic[T]):
    """Callbacks run on the event loop for cache changes.

    `on_upsert(old, new)` receives `old=None` for additions and `old is new`
    on resync.
    """

    on_upsert: Callable[[T | None, T], None] | None = None
    on_delete: Callable[[T], None] | None = None


class Informer(Generic[T]):
    """Watch-fed cache of decoded objects."""

    def __init__(
        self,
        name: str,
        list_fn: Callable[..., Any],
        decode: Callable[[dict[str, Any]], T | None],
        key_fn: Callable[[T], str],
        watch_timeout_seconds: int = 300,
        resync_period: float | None = None,
        relist_delay: float = 5.0,
    ):
        """Initialize the informer.

        Args:
            name: Collection name used in logs
            list_fn: List callable accepted by kubernetes.watch.Watch.stream
            decode: Converts a raw object to a snapshot (None skips it)
            key_fn: Cache key of a snapshot
            watch_timeout_seconds: Server-side timeout of one watch stream
            resync_period: Seconds between full handler re-deliveries
            relist_delay: Pause before relisting after a failure
        """
        self.name = name
        self._list_fn = list_fn
        self._decode = decode
        self._key_fn = key_fn
        self._watch_timeout = watch_timeout_seconds
        self._resync_period = resync_period
        self._relist_delay = relist_delay

        self._items: dict[str, T] = {}
        self._handlers: list[EventHandler[T]] = []
        self._synced = asyncio.Event()
        self._resource_version: str | None = None

    # =========================================================================
    # Read access
    # =========================================================================

    def get(self, key: str) -> T | None:
        return self._items.get(key)

    def list(self) -> list[T]:
        return list(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    @property
    def has_synced(self) -> bool:
        return self._synced.is_set()

    async def wait_for_sync(self, timeout: float | None = None) -> bool:
        try:
            await asyncio.wait_for(self._synced.wait(), timeout=timeout)
        except TimeoutError:
            return False
        return True

    def add_handler(self, handler: EventHandler[T]) -> None:
        self._handlers.append(handler)

    # =========================================================================
    # Cache mutation
    # =========================================================================

    def store(self, obj: T) -> None:
        """Insert or replace a snapshot and notify handlers."""
        key = self._key_fn(obj)
        old = self._items.get(key)
        self._items[key] = obj
        for handler in self._handlers:
            if handler.on_upsert:
                handler.on_upsert(old, obj)

    def remove(self, key: str) -> None:
        """Drop a snapshot and notify handlers."""
        old = self._items.pop(key, None)
        if old is None:
            return
        for handler in self._handlers:
            if handler.on_delete:
                handler.on_delete(old)

    def replace(self, objects: list[T]) -> None:
        """Replace the whole cache with a fresh listing."""
        fresh = {self._key_fn(obj): obj for obj in objects}
        for key in set(self._items) - set(fresh):
            self.remove(key)
        for obj in fresh.values():
            self.store(obj)
        self._synced.set()

    def resync(self) -> None:
        """Re-deliver every cached snapshot to the handlers."""
        for obj in list(self._items.values()):
            for handler in self._handlers:
                if handler.on_upsert:
                    handler.on_upsert(obj, obj)

    # =========================================================================
    # List / watch loop
    # =========================================================================

    async def run(self) -> None:
        """List and watch until cancelled."""
        resync_task = None
        if self._resync_period:
            resync_task = asyncio.create_task(self._resync_loop())
        try:
            while True:
                try:
                    await self.sync()
                    while True:
                        await self._watch()
                except ApiException as e:
                    if e.status == 410:
                        logger.info("Watch expired, relisting", collection=self.name)
                        continue
                    logger.warning(
                        "List/watch failed",
                        collection=self.name,
                        error=str(translate_api_error(e, f"watch {self.name}")),
                    )
                except Exception as e:
                    logger.warning("List/watch failed", collection=self.name, error=str(e))
                await asyncio.sleep(self._relist_delay)
        finally:
            if resync_task:
                resync_task.cancel()

    async def sync(self) -> None:
        """List the collection and replace the cache."""
        listing = await asyncio.to_thread(self._list_fn)
        objects = []
        for raw in listing.get("items") or []:
            obj = self._decode_or_skip(raw)
            if obj is not None:
                objects.append(obj)
        self.replace(objects)
        self._resource_version = (listing.get("metadata") or {}).get("resourceVersion")
        logger.info("Collection listed", collection=self.name, items=len(objects))

    def _decode_or_skip(self, raw: dict[str, Any]) -> T | None:
        try:
            return self._decode(raw)
        except (ValidationError, ValueError, TypeError) as e:
            metadata = raw.get("metadata") or {}
            logger.warning(
                "Skipping undecodable object",
                collection=self.name,
                namespace=metadata.get("namespace"),
                object=metadata.get("name"),
                error=str(e),
            )
            return None

    async def _watch(self) -> None:
        loop = asyncio.get_running_loop()
        events: asyncio.Queue[tuple[str, Any]] = asyncio.Queue()
        stream = watch.Watch()
        stopped = threading.Event()
        # Daemon thread: a blocked read must not hold up process exit
        thread = threading.Thread(
            target=self._stream,
            args=(stream, loop, events, stopped),
            name=f"watch-{self.name}",
            daemon=True,
        )
        thread.start()
        try:
            while True:
                kind, payload = await events.get()
                if kind == "end":
                    return
                if kind == "error":
                    raise payload
                self._apply(payload)
        finally:
            stopped.set()
            stream.stop()

    def _stream(
        self,
        stream: watch.Watch,
        loop: asyncio.AbstractEventLoop,
        events: asyncio.Queue[tuple[str, Any]],
        stopped: threading.Event,
    ) -> None:
        """Feed watch events to the loop until the consumer goes away.

        Runs in its own thread. Nothing is posted once `stopped` is set or the
        loop is closed, so a stream abandoned by a relist or by shutdown ends
        quietly on its next event or server timeout.
        """

        def post(kind: str, payload: Any) -> bool:
            if stopped.is_set() or loop.is_closed():
                return False
            loop.call_soon_threadsafe(events.put_nowait, (kind, payload))
            return True

        try:
            for event in stream.stream(
                self._list_fn,
                resource_version=self._resource_version,
                timeout_seconds=self._watch_timeout,
                allow_watch_bookmarks=True,
            ):
                if not post("event", event):
                    stream.stop()
                    return
        except Exception as e:
            post("error", e)
        else:
            post("end", None)

    def _apply(self, event: dict[str, Any]) -> None:
        raw = event.get("raw_object") or event.get("object") or {}
        version = (raw.get("metadata") or {}).get("resourceVersion")
        if version:
            self._resource_version = version

        event_type = event.get("type")
        if event_type == "BOOKMARK":
            return
        if event_type == "ERROR":
            raise RuntimeError(f"watch error: {raw.get('message', raw)}")
        obj = self._decode_or_skip(raw)
        if obj is None:
            return
        if event_type == "DELETED":
            self.remove(self._key_fn(obj))
        else:
            self.store(obj)

    async def _resync_loop(self) -> None:
        while True:
            await asyncio.sleep(self._resync_period)
            if self.has_synced:
                self.resync()
