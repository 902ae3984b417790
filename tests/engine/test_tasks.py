"""Tests for tracked background tasks."""

from __future__ import annotations

import asyncio
import logging

import pytest

from allocsync.engine.tasks import BackgroundTasks


class TestBackgroundTasks:
    """Tests for BackgroundTasks."""

    @pytest.mark.asyncio
    async def test_drain_waits_for_tasks(self) -> None:
        """Drain should return once every task finished."""
        tasks = BackgroundTasks("test")
        done: list[int] = []

        async def work(n: int) -> None:
            await asyncio.sleep(0.01)
            done.append(n)

        tasks.spawn(work(1), "one")
        tasks.spawn(work(2), "two")
        assert len(tasks) == 2

        await tasks.drain()

        assert sorted(done) == [1, 2]
        assert len(tasks) == 0

    @pytest.mark.asyncio
    async def test_drain_waits_for_spawned_during_drain(self) -> None:
        """Tasks spawned by tasks should be awaited too."""
        tasks = BackgroundTasks("test")
        done: list[str] = []

        async def child() -> None:
            done.append("child")

        async def parent() -> None:
            tasks.spawn(child(), "child")

        tasks.spawn(parent(), "parent")
        await tasks.drain()

        assert done == ["child"]

    @pytest.mark.asyncio
    async def test_failure_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        """A failing task should be logged, not raised from drain."""
        tasks = BackgroundTasks("test")

        async def broken() -> None:
            raise RuntimeError("boom")

        with caplog.at_level(logging.ERROR, logger="allocsync.engine.tasks"):
            tasks.spawn(broken(), "broken")
            await tasks.drain()

        assert "Background task failed: test:broken" in caplog.text

    @pytest.mark.asyncio
    async def test_cancel_all(self) -> None:
        """Should cancel pending tasks."""
        tasks = BackgroundTasks("test")
        task = tasks.spawn(asyncio.sleep(10), "sleep")
        tasks.cancel_all()
        await tasks.drain()
        assert task.cancelled()
