"""Bounded notification queue drained by a single update worker."""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

from nomad_deployer.constants import NOTIFICATION_QUEUE_CAPACITY
from nomad_deployer.logging import get_logger

if TYPE_CHECKING:
    import structlog

    from nomad_deployer.models import BuildNotification
    from nomad_deployer.updater import ImageUpdater, UpdateCycleResult


class UpdateWorker:
    """Single consumer of build notifications.

    Notifications are processed strictly one at a time in FIFO order.
    ``submit`` suspends the caller while the queue is full, which is the
    only backpressure applied to the HTTP listener.
    """

    def __init__(
        self,
        updater: ImageUpdater,
        *,
        capacity: int = NOTIFICATION_QUEUE_CAPACITY,
        log: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._updater = updater
        self._queue: asyncio.Queue[BuildNotification] = asyncio.Queue(maxsize=capacity)
        self._task: asyncio.Task[None] | None = None
        self._processed = 0
        self._last_result: UpdateCycleResult | None = None
        self._log = log or get_logger("nomad_deployer.worker")

    @property
    def capacity(self) -> int:
        return self._queue.maxsize

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def processed_count(self) -> int:
        return self._processed

    @property
    def last_result(self) -> UpdateCycleResult | None:
        return self._last_result

    async def submit(self, notification: BuildNotification) -> None:
        """Enqueue a notification, waiting for room if the queue is full."""
        await self._queue.put(notification)

    async def join(self) -> None:
        """Wait until every submitted notification has been processed."""
        await self._queue.join()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self.run(), name="nomad-deployer-worker")
        self._log.info("update_worker_started", capacity=self.capacity)

    async def stop(self) -> None:
        """Cancel the worker, interrupting any in-flight Nomad call."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        self._log.info("update_worker_stopped", pending=self.pending)

    async def run(self) -> None:
        while True:
            notification = await self._queue.get()
            try:
                self._last_result = await self._updater.process(notification)
            except Exception:
                self._log.exception(
                    "notification_processing_crashed",
                    docker_url=notification.docker_url,
                )
            finally:
                self._processed += 1
                self._queue.task_done()
