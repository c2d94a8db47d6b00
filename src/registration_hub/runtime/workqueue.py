"""Per-key work queue for controllers.

Semantics:
- A key waits in the queue at most once; repeated adds coalesce.
- A key handed to a worker is never handed to a second worker until the
  first calls done(). Adds that arrive meanwhile re-queue it afterwards.
- Failed keys come back after a per-key exponential backoff.
"""

from __future__ import annotations

import asyncio
from collections import deque

from hub_shared.observability import get_logger

logger = get_logger(__name__)


class WorkQueue:
    """De-duplicating async queue of object keys."""

    def __init__(
        self,
        name: str,
        base_delay: float = 0.5,
        max_delay: float = 300.0,
    ):
        """Initialize the queue.

        Args:
            name: Queue name used in logs
            base_delay: First rate-limited retry delay in seconds
            max_delay: Cap of the rate-limited retry delay in seconds
        """
        self.name = name
        self.base_delay = base_delay
        self.max_delay = max_delay

        self._queue: deque[str] = deque()
        self._dirty: set[str] = set()
        self._processing: set[str] = set()
        self._failures: dict[str, int] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._wakeup = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()
        self._shutting_down = False

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    @property
    def processing(self) -> int:
        return len(self._processing)

    def add(self, key: str) -> None:
        """Queue a key unless it is already waiting."""
        if self._shutting_down or key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            # done() puts it back
            return
        self._queue.append(key)
        self._wakeup.set()

    def add_after(self, key: str, delay: float) -> None:
        """Queue a key once `delay` seconds have passed.

        A pending timer for the same key is kept if it fires sooner.
        """
        if self._shutting_down:
            return
        if delay <= 0:
            self.add(key)
            return

        loop = asyncio.get_running_loop()
        when = loop.time() + delay
        existing = self._timers.get(key)
        if existing is not None:
            if existing.when() <= when:
                return
            existing.cancel()
        self._timers[key] = loop.call_at(when, self._fire, key)

    def add_rate_limited(self, key: str) -> float:
        """Queue a key after its backoff delay. Returns the delay used."""
        failures = self._failures.get(key, 0)
        self._failures[key] = failures + 1
        delay = min(self.base_delay * (2**failures), self.max_delay)
        self.add_after(key, delay)
        return delay

    def forget(self, key: str) -> None:
        """Reset the backoff of a key."""
        self._failures.pop(key, None)

    def discard(self, key: str) -> None:
        """Drop a key's waiting entry, pending timer and backoff."""
        self.forget(key)
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()
        if key in self._dirty:
            self._dirty.discard(key)
            if key in self._queue:
                self._queue.remove(key)

    def num_requeues(self, key: str) -> int:
        return self._failures.get(key, 0)

    async def get(self) -> str | None:
        """Wait for the next key. Returns None once shut down."""
        while not self._queue and not self._shutting_down:
            self._wakeup.clear()
            await self._wakeup.wait()
        if self._shutting_down:
            return None

        key = self._queue.popleft()
        self._dirty.discard(key)
        self._processing.add(key)
        self._idle.clear()
        return key

    def done(self, key: str) -> None:
        """Mark a key as processed; re-queue it if it was added meanwhile."""
        self._processing.discard(key)
        if key in self._dirty and not self._shutting_down:
            self._queue.append(key)
            self._wakeup.set()
        if not self._processing:
            self._idle.set()

    def shut_down(self) -> None:
        """Stop admitting keys and wake every waiting worker."""
        self._shutting_down = True
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._queue.clear()
        self._dirty.clear()
        self._wakeup.set()

    async def shut_down_with_drain(self, timeout: float) -> bool:
        """Shut down and wait for in-flight keys.

        Returns:
            True if all in-flight keys finished within `timeout`
        """
        self.shut_down()
        try:
            await asyncio.wait_for(self._idle.wait(), timeout=timeout)
        except TimeoutError:
            logger.warning(
                "Work queue drain timed out",
                queue=self.name,
                in_flight=len(self._processing),
            )
            return False
        return True

    def _fire(self, key: str) -> None:
        self._timers.pop(key, None)
        self.add(key)
