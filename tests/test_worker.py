"""Tests for nomad_deployer.worker: bounded queue and single consumer."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from nomad_deployer.models import BuildNotification
from nomad_deployer.updater import UpdateCycleResult
from nomad_deployer.worker import UpdateWorker


def _n(tag: str) -> BuildNotification:
    return BuildNotification(docker_url="registry/app", docker_tags=(tag,))


def _mock_updater() -> AsyncMock:
    updater = AsyncMock()
    updater.process = AsyncMock(
        side_effect=lambda n: UpdateCycleResult(status="success", tag=n.deploy_tag)
    )
    return updater


class TestConstruction:
    def test_default_capacity_is_five(self) -> None:
        assert UpdateWorker(_mock_updater()).capacity == 5

    def test_capacity_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            UpdateWorker(_mock_updater(), capacity=0)


class TestQueue:
    async def test_sixth_submit_blocks_until_drained(self) -> None:
        worker = UpdateWorker(_mock_updater())
        for i in range(5):
            await worker.submit(_n(f"v{i}"))
        assert worker.pending == 5

        sixth = asyncio.create_task(worker.submit(_n("v5")))
        await asyncio.sleep(0.01)
        assert not sixth.done()

        worker.start()
        await asyncio.wait_for(sixth, timeout=1)
        await asyncio.wait_for(worker.join(), timeout=1)
        assert worker.processed_count == 6
        await worker.stop()

    async def test_fifo_one_at_a_time(self) -> None:
        seen: list[str] = []
        active = 0
        max_active = 0

        async def process(n: BuildNotification) -> UpdateCycleResult:
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0)
            seen.append(n.deploy_tag or "")
            active -= 1
            return UpdateCycleResult(status="success")

        updater = AsyncMock()
        updater.process = AsyncMock(side_effect=process)
        worker = UpdateWorker(updater)
        worker.start()
        for tag in ("v1", "v2", "v3", "v4"):
            await worker.submit(_n(tag))
        await asyncio.wait_for(worker.join(), timeout=1)
        await worker.stop()

        assert seen == ["v1", "v2", "v3", "v4"]
        assert max_active == 1

    async def test_last_result_recorded(self) -> None:
        worker = UpdateWorker(_mock_updater())
        worker.start()
        await worker.submit(_n("v9"))
        await asyncio.wait_for(worker.join(), timeout=1)
        await worker.stop()
        assert worker.last_result is not None
        assert worker.last_result.tag == "v9"

    async def test_crash_does_not_stop_worker(self) -> None:
        updater = AsyncMock()
        updater.process = AsyncMock(
            side_effect=[RuntimeError("boom"), UpdateCycleResult(status="success")]
        )
        worker = UpdateWorker(updater)
        worker.start()
        await worker.submit(_n("v1"))
        await worker.submit(_n("v2"))
        await asyncio.wait_for(worker.join(), timeout=1)

        assert worker.is_running
        assert worker.processed_count == 2
        assert updater.process.await_count == 2
        await worker.stop()


class TestLifecycle:
    async def test_start_is_idempotent(self) -> None:
        worker = UpdateWorker(_mock_updater())
        worker.start()
        task = worker._task
        worker.start()
        assert worker._task is task
        await worker.stop()

    async def test_stop_cancels_inflight_call(self) -> None:
        started = asyncio.Event()
        cancelled = asyncio.Event()

        async def hang(n: BuildNotification) -> UpdateCycleResult:
            started.set()
            try:
                await asyncio.sleep(3600)
            except asyncio.CancelledError:
                cancelled.set()
                raise
            return UpdateCycleResult(status="success")

        updater = AsyncMock()
        updater.process = AsyncMock(side_effect=hang)
        worker = UpdateWorker(updater)
        worker.start()
        await worker.submit(_n("v1"))
        await asyncio.wait_for(started.wait(), timeout=1)

        await worker.stop()

        assert cancelled.is_set()
        assert not worker.is_running

    async def test_stop_without_start(self) -> None:
        worker = UpdateWorker(_mock_updater())
        await worker.stop()
        assert not worker.is_running
