"""Scheduler for periodic inventory reconciliation.

This module provides:
- ReconciliationScheduler: Runs sync_inventory_status on a fixed interval
- Manual trigger for CLI/API usage
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

if TYPE_CHECKING:
    from allocsync.engine.coordinator import SyncCoordinator
    from allocsync.engine.types import SyncReport

logger = logging.getLogger(__name__)

JOB_ID = "inventory_reconciliation"


class ReconciliationScheduler:
    """Scheduler for the reconciliation pass.

    Must be started from inside a running event loop; the job runs on that
    loop, alongside request handlers. A pass still running when the next
    one is due is skipped, not stacked.
    """

    def __init__(
        self,
        coordinator: SyncCoordinator,
        interval: float = 30,
        run_on_start: bool = True,
    ) -> None:
        """Initialize the scheduler.

        Args:
            coordinator: Coordinator to reconcile.
            interval: Seconds between passes.
            run_on_start: Run a first pass right after start().
        """
        self._coordinator = coordinator
        self._interval = interval
        self._run_on_start = run_on_start
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    async def _sync_job(self) -> None:
        """Job function for scheduled reconciliation."""
        logger.debug("Starting scheduled inventory sync")
        try:
            report = await self._coordinator.sync_inventory_status()
        except Exception:
            logger.exception("Error during scheduled inventory sync")
            return
        if not report.success:
            logger.warning(
                "Scheduled inventory sync: %d failures", len(report.failures)
            )

    def start(self) -> None:
        """Start the scheduler."""
        if self._scheduler is not None:
            return  # Already running

        self._scheduler = AsyncIOScheduler()

        # Omitting next_run_time schedules the first pass one interval out
        extra = {"next_run_time": datetime.now().astimezone()} if self._run_on_start else {}
        self._scheduler.add_job(
            self._sync_job,
            trigger=IntervalTrigger(seconds=self._interval),
            id=JOB_ID,
            name="Inventory reconciliation",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **extra,
        )
        self._scheduler.start()
        logger.info("Reconciliation scheduler started (every %ss)", self._interval)

    def stop(self) -> None:
        """Stop the scheduler."""
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Reconciliation scheduler stopped")

    async def run_now(self) -> SyncReport:
        """Run a reconciliation pass immediately (manual trigger).

        Returns:
            SyncReport of the pass.
        """
        return await self._coordinator.sync_inventory_status()
