"""In-process queue that moves alert dispatch off the request path.

Ingestion enqueues a coroutine factory and returns immediately; a single
worker task awaits each job in order. ``stop()`` gives queued jobs a
bounded window to finish, then cancels the worker.

Lifecycle:
    1. ``start()`` - spawn the worker
    2. ``submit(factory)`` - enqueue without blocking
    3. ``stop(drain_timeout)`` - drain, then cancel
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

JobFactory = Callable[[], Awaitable[Any]]


class DispatchQueue:
    """Bounded FIFO of dispatch jobs consumed by one worker task."""

    def __init__(self, maxsize: int = 100) -> None:
        self._queue: asyncio.Queue[JobFactory] = asyncio.Queue(maxsize=maxsize)
        self._worker: asyncio.Task | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._worker = asyncio.create_task(self._work(), name="alert-dispatch-worker")
        logger.info("DispatchQueue started (maxsize=%d)", self._queue.maxsize)

    def submit(self, factory: JobFactory) -> bool:
        """Enqueue a job. Returns False when stopped or full; never blocks."""
        if not self._running:
            logger.warning("DispatchQueue not running, dropping job")
            return False
        try:
            self._queue.put_nowait(factory)
        except asyncio.QueueFull:
            logger.error("DispatchQueue full (%d), dropping job", self._queue.maxsize)
            return False
        return True

    async def stop(self, drain_timeout: float = 5.0) -> None:
        """Stop accepting jobs, wait up to ``drain_timeout`` for the backlog."""
        if not self._running:
            return
        self._running = False

        try:
            await asyncio.wait_for(self._queue.join(), timeout=drain_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "DispatchQueue drain timed out, %d job(s) dropped", self._queue.qsize(),
            )

        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

        logger.info("DispatchQueue stopped")

    async def _work(self) -> None:
        while True:
            factory = await self._queue.get()
            try:
                await factory()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Dispatch job failed: %s", e)
            finally:
                self._queue.task_done()
