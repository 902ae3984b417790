"""Allocation registry.

This module provides:
- AllocationRegistry: equipment id -> AllocationRecord, persisted across
  restarts and projected into the EquipmentStateStore

Architecture:
    The in-memory dict is authoritative for the session. Every mutation
    updates the dict, projects into the state store, then schedules a
    snapshot write of the whole registry. Snapshot writes are serialized so
    an older snapshot never overwrites a newer one. A failed write is logged
    and the session carries on; the next mutation writes a full snapshot
    again.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from allocsync.engine.tasks import BackgroundTasks
from allocsync.engine.types import AllocationRecord, EquipmentStatus, utcnow

if TYPE_CHECKING:
    from allocsync.engine.persistence import AllocationCache, CacheRow
    from allocsync.engine.state_store import EquipmentStateStore

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = timedelta(hours=24)


class AllocationRegistry:
    """Ledger of allocations made through the engine."""

    def __init__(
        self,
        state_store: EquipmentStateStore,
        cache: AllocationCache | None = None,
        retention: timedelta = DEFAULT_RETENTION,
    ) -> None:
        """Initialize the registry.

        Args:
            state_store: Store receiving the status projection.
            cache: Optional persisted cache (None disables persistence).
            retention: Persisted records older than this are dropped on load.
        """
        self._state_store = state_store
        self._cache = cache
        self._retention = retention
        self._records: dict[str, AllocationRecord] = {}
        self._tasks = BackgroundTasks("registry")
        self._persist_lock = asyncio.Lock()

    @property
    def retention(self) -> timedelta:
        return self._retention

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, equipment_id: object) -> bool:
        return equipment_id in self._records

    def get(self, equipment_id: str) -> AllocationRecord | None:
        """Get the allocation for an id."""
        return self._records.get(equipment_id)

    def records(self) -> list[AllocationRecord]:
        """List all allocations in insertion order."""
        return list(self._records.values())

    def for_job(self, job_id: str) -> list[AllocationRecord]:
        """List allocations held by one job."""
        return [r for r in self._records.values() if r.job_id == job_id]

    # === Mutations ===

    def set_allocation(self, record: AllocationRecord) -> None:
        """Store a record, project it, and persist.

        Args:
            record: Allocation to store (replaces any record for the same id).
        """
        self._apply(record)
        logger.debug("Allocation set: %s -> %s", record.equipment_id, record.job_id)
        self.persist()

    def remove_allocation(self, equipment_id: str) -> AllocationRecord | None:
        """Delete a record and reset the projection to available.

        The projection is reset even if no record existed.

        Returns:
            The removed record, if there was one.
        """
        removed = self._records.pop(equipment_id, None)
        self._state_store.update(
            equipment_id, status=EquipmentStatus.AVAILABLE, job_id=None
        )
        if removed is not None:
            logger.debug("Allocation removed: %s (was %s)", equipment_id, removed.job_id)
            self.persist()
        return removed

    def _apply(self, record: AllocationRecord) -> None:
        self._records[record.equipment_id] = record
        self._state_store.update(
            record.equipment_id, status=record.status, job_id=record.job_id
        )

    # === Persistence ===

    def load(self, now: datetime | None = None) -> int:
        """Load persisted records and warm the state store.

        Malformed and expired rows are discarded individually; the rest are
        replayed through the same path as set_allocation.

        Args:
            now: Reference time for expiry (defaults to now).

        Returns:
            Number of records loaded.
        """
        if self._cache is None:
            return 0

        try:
            rows = self._cache.load_rows()
        except Exception:
            logger.exception("Failed to read allocation cache, starting empty")
            return 0

        now = now or utcnow()
        loaded = malformed = expired = 0
        for row in rows:
            try:
                record = AllocationRecord.from_row(row)
            except (ValueError, TypeError, OverflowError, OSError) as e:
                malformed += 1
                logger.warning("Discarding malformed cached allocation %r: %s", row, e)
                continue
            if record.is_expired(self._retention, now):
                expired += 1
                continue
            self._apply(record)
            loaded += 1

        logger.info(
            "Loaded %d cached allocations (%d expired, %d malformed discarded)",
            loaded,
            expired,
            malformed,
        )
        if malformed or expired:
            self.persist()
        return loaded

    def _snapshot(self) -> list[CacheRow]:
        return [record.to_row() for record in self._records.values()]

    def _save(self, rows: list[CacheRow]) -> None:
        if self._cache is None:
            return
        try:
            self._cache.save(rows)
        except Exception:
            logger.exception("Failed to persist %d allocations", len(rows))

    async def _write(self, rows: list[CacheRow]) -> None:
        # The lock is FIFO, so snapshots land in the order they were taken
        async with self._persist_lock:
            await asyncio.to_thread(self._save, rows)

    def persist(self) -> None:
        """Write a snapshot of the registry without blocking the caller.

        Inside an event loop the write runs as a background task; outside
        one it runs inline. Failures are logged, never raised.
        """
        if self._cache is None:
            return
        rows = self._snapshot()
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self._save(rows)
            return
        self._tasks.spawn(self._write(rows), "persist")

    async def flush(self) -> None:
        """Wait for pending snapshot writes."""
        await self._tasks.drain()
