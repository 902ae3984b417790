"""Sync coordinator for equipment allocation.

This module provides:
- SyncCoordinator: Orchestrates validation, allocation, release, conflict
  resolution and reconciliation against the inventory store
- build_coordinator: Wires a coordinator and its components from config

The coordinator is the "brain" of the engine:
1. Validates requests against the store and the in-process state
2. Writes allocations through to the store, then commits them locally
3. Records conflicts instead of overwriting a holder
4. Periodically repairs drift between the registry and the store

Validation outcomes:
    | Store / state                     | Outcome                | Side effect     |
    |-----------------------------------|------------------------|-----------------|
    | unknown id                        | NOT_FOUND              | none            |
    | maintenance, red-tagged, ...      | UNAVAILABLE            | none            |
    | held by another job               | CONFLICTED             | conflict record |
    | held by the requested job         | AVAILABLE (idempotent) | none            |
    | bulk, not enough free quantity    | INSUFFICIENT_QUANTITY  | none            |
    | store error                       | VALIDATION_FAILED      | error reported  |
    | otherwise                         | AVAILABLE              | none            |

Concurrency:
    Everything runs on one event loop. Store calls are the only suspension
    points, and other operations may run while one is suspended. Commits
    therefore re-read state after the last await instead of trusting what
    was seen before it; there is no lock.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from allocsync.core.types import ResolutionChoice, SyncState
from allocsync.engine.conflicts import ConflictManager
from allocsync.engine.persistence import AllocationCache
from allocsync.engine.registry import AllocationRegistry
from allocsync.engine.state_store import EquipmentStateStore
from allocsync.engine.tasks import BackgroundTasks
from allocsync.engine.types import (
    UNKNOWN_JOB_NAME,
    AllocationError,
    AllocationRecord,
    BatchAllocationResult,
    ConflictRecord,
    EquipmentStatus,
    InventoryChange,
    SyncFailure,
    SyncReport,
    ValidationOutcome,
    ValidationResult,
    utcnow,
)
from allocsync.inventory.base import STATUS_AVAILABLE, STATUS_DEPLOYED
from allocsync.inventory.lookup import (
    available_quantity,
    list_inventory,
    resolve_equipment,
    write_equipment,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from datetime import datetime

    from allocsync.core.config import EngineConfig
    from allocsync.engine.types import ConflictCallback, ErrorCallback, StateCallback
    from allocsync.inventory.base import InventoryStore
    from allocsync.inventory.lookup import InventoryItem

logger = logging.getLogger(__name__)

REASON_NOT_FOUND = "Equipment not found in inventory"
REASON_INSUFFICIENT = "Insufficient equipment quantity available"
REASON_VALIDATION_FAILED = "Failed to validate equipment availability"
REASON_NOT_AVAILABLE = "Equipment not available for allocation"
REASON_SYNC_FAILED = "Failed to sync inventory status"


class SyncCoordinator:
    """Central orchestrator for equipment allocation.

    Usage:
        coordinator = build_coordinator(store, EngineConfig())
        await coordinator.start()  # Loads cached allocations

        if await coordinator.validate_equipment_availability("eq-1", "job-2"):
            await coordinator.allocate_equipment("eq-1", "job-2", "Job Two")

        for conflict in coordinator.conflicts:
            await coordinator.resolve_conflict(conflict, ResolutionChoice.CURRENT)

        await coordinator.stop()
    """

    def __init__(
        self,
        store: InventoryStore,
        *,
        state_store: EquipmentStateStore | None = None,
        registry: AllocationRegistry | None = None,
        conflict_manager: ConflictManager | None = None,
        refresh_delay: float = 1.0,
    ) -> None:
        """Initialize the coordinator.

        Args:
            store: External inventory store.
            state_store: Shared state store (created if omitted).
            registry: Allocation registry (created without persistence if omitted).
            conflict_manager: Conflict manager (created if omitted).
            refresh_delay: Seconds to wait before asking the store to refresh.
        """
        self._store = store
        self._state_store = state_store or EquipmentStateStore()
        self._registry = registry or AllocationRegistry(self._state_store)
        self._conflicts = conflict_manager or ConflictManager(self._registry, store)
        self._refresh_delay = refresh_delay

        self._tasks = BackgroundTasks("coordinator")
        self._refresh_pending = False
        self._started = False

        # Sync status
        self._sync_state = SyncState.IDLE
        self._last_sync_at: datetime | None = None
        self._last_report: SyncReport | None = None

        # Callbacks
        self._on_conflict: ConflictCallback | None = None
        self._on_error: ErrorCallback | None = None

    # === Components and status ===

    @property
    def store(self) -> InventoryStore:
        return self._store

    @property
    def state_store(self) -> EquipmentStateStore:
        return self._state_store

    @property
    def registry(self) -> AllocationRegistry:
        return self._registry

    @property
    def conflicts(self) -> tuple[ConflictRecord, ...]:
        """Read-only ordered snapshot of open conflicts."""
        return self._conflicts.conflicts

    @property
    def conflict_manager(self) -> ConflictManager:
        return self._conflicts

    @property
    def sync_state(self) -> SyncState:
        return self._sync_state

    @property
    def last_sync_at(self) -> datetime | None:
        return self._last_sync_at

    @property
    def last_report(self) -> SyncReport | None:
        return self._last_report

    def set_on_conflict(self, callback: ConflictCallback) -> None:
        """Set callback fired when validation records a conflict."""
        self._on_conflict = callback

    def set_on_error(self, callback: ErrorCallback) -> None:
        """Set callback for reported errors.

        Args:
            callback: Function(message, exception)
        """
        self._on_error = callback

    # === Lifecycle ===

    async def start(self) -> int:
        """Load cached allocations so the state store is warm.

        Returns:
            Number of allocations restored.
        """
        if self._started:
            logger.warning("Coordinator already started")
            return len(self._registry)
        self._started = True
        loaded = self._registry.load()
        logger.info("Coordinator started (%d allocations restored)", loaded)
        return loaded

    async def stop(self) -> None:
        """Wait for background work and pending cache writes."""
        await self.wait_idle()
        self._started = False
        logger.info("Coordinator stopped")

    async def wait_idle(self) -> None:
        """Wait until refreshes and cache writes have finished."""
        await self._tasks.drain()
        await self._registry.flush()

    # === Observers ===

    def subscribe_to_equipment_changes(
        self,
        equipment_id: str,
        callback: StateCallback,
    ) -> Callable[[], None]:
        """Subscribe to state changes of one piece of equipment.

        Returns:
            Unsubscribe function.
        """
        return self._state_store.subscribe(equipment_id, callback)

    # === Validation ===

    async def validate_equipment_availability(
        self,
        equipment_id: str,
        requested_job_id: str,
        requested_job_name: str | None = None,
        quantity: int = 1,
    ) -> ValidationResult:
        """Check whether equipment can be assigned to a job.

        Rejections are returned, never raised. A store error fails closed.

        Args:
            equipment_id: Equipment id.
            requested_job_id: Job asking for the equipment.
            requested_job_name: Display name of that job (used in conflicts).
            quantity: Requested quantity for bulk items.

        Returns:
            ValidationResult; truthy only if available.
        """
        try:
            result, _ = await self._evaluate(
                equipment_id, requested_job_id, requested_job_name, quantity
            )
        except Exception as e:
            self._report(REASON_VALIDATION_FAILED, e)
            return ValidationResult(
                ValidationOutcome.VALIDATION_FAILED, REASON_VALIDATION_FAILED
            )
        return result

    async def _evaluate(
        self,
        equipment_id: str,
        requested_job_id: str,
        requested_job_name: str | None,
        quantity: int,
    ) -> tuple[ValidationResult, InventoryItem | None]:
        item = await resolve_equipment(self._store, equipment_id)
        if item is None:
            logger.info("Validation %s: not found", equipment_id)
            return ValidationResult(ValidationOutcome.NOT_FOUND, REASON_NOT_FOUND), None

        if not item.is_assignable:
            reason = f"{item.name} not available (Status: {item.status})"
            logger.info("Validation %s: %s", equipment_id, reason)
            return ValidationResult(ValidationOutcome.UNAVAILABLE, reason), item

        holder = self._current_holder(item)
        if holder is not None and holder != requested_job_id:
            conflict = self._record_conflict(
                item, holder, requested_job_id, requested_job_name
            )
            reason = f"{item.name} is already assigned to {conflict.current_job_name}"
            return ValidationResult(ValidationOutcome.CONFLICTED, reason, conflict), item

        if holder == requested_job_id:
            return ValidationResult(ValidationOutcome.AVAILABLE), item

        free = await available_quantity(self._store, item)
        if free is not None and free < quantity:
            logger.info(
                "Validation %s: %d requested, %d available", equipment_id, quantity, free
            )
            return (
                ValidationResult(
                    ValidationOutcome.INSUFFICIENT_QUANTITY, REASON_INSUFFICIENT
                ),
                item,
            )

        return ValidationResult(ValidationOutcome.AVAILABLE), item

    def _current_holder(self, item: InventoryItem) -> str | None:
        """Job currently holding an item.

        The state store entry is the freshest view when one exists; the store
        is still consulted so equipment assigned directly in the store is
        never handed out twice.
        """
        entry = self._state_store.get(item.equipment_id)
        if entry is not None and entry.status.is_held and entry.job_id:
            return entry.job_id
        if item.is_held and item.job_id:
            return item.job_id
        return None

    def _job_name(self, equipment_id: str, job_id: str) -> str:
        record = self._registry.get(equipment_id)
        if record is not None and record.job_id == job_id:
            return record.job_name
        return UNKNOWN_JOB_NAME

    def _record_conflict(
        self,
        item: InventoryItem,
        holder: str,
        requested_job_id: str,
        requested_job_name: str | None,
    ) -> ConflictRecord:
        conflict = ConflictRecord(
            equipment_id=item.equipment_id,
            equipment_name=item.name,
            current_job_id=holder,
            current_job_name=self._job_name(item.equipment_id, holder),
            requested_job_id=requested_job_id,
            requested_job_name=requested_job_name or requested_job_id,
        )
        self._add_conflict(conflict)
        return conflict

    def _add_conflict(self, conflict: ConflictRecord) -> None:
        self._conflicts.add_conflict(conflict)
        if self._on_conflict:
            try:
                self._on_conflict(conflict)
            except Exception:
                logger.exception("Conflict callback failed for %s", conflict.equipment_id)

    # === Mutations ===

    async def allocate_equipment(
        self,
        equipment_id: str,
        job_id: str,
        job_name: str,
    ) -> AllocationRecord:
        """Allocate equipment to a job.

        Availability is derived again here; a result the caller got from an
        earlier validation is not trusted.

        Args:
            equipment_id: Equipment id.
            job_id: Job receiving the equipment.
            job_name: Display name of the job.

        Returns:
            The committed allocation.

        Raises:
            AllocationError: If the equipment is not available, or another
                job committed it while the store write was in flight.
            InventoryStoreError: If the store write failed.
        """
        try:
            result, item = await self._evaluate(equipment_id, job_id, job_name, 1)
        except Exception as e:
            self._report(REASON_VALIDATION_FAILED, e)
            raise AllocationError(REASON_NOT_AVAILABLE, REASON_VALIDATION_FAILED) from e
        if not result or item is None:
            logger.warning(
                "Allocation of %s to %s rejected: %s", equipment_id, job_id, result.reason
            )
            raise AllocationError(REASON_NOT_AVAILABLE, result.reason)

        try:
            await write_equipment(
                self._store, item, {"status": STATUS_DEPLOYED, "job_id": job_id}
            )
        except Exception as e:
            self._report(f"Failed to allocate {equipment_id} to {job_id}", e)
            raise

        # Re-read after the write: another allocation may have committed meanwhile
        entry = self._state_store.get(equipment_id)
        if entry is not None and entry.status.is_held and entry.job_id not in (None, job_id):
            self._record_conflict(item, entry.job_id, job_id, job_name)
            # Our write may have landed after the winner's; put the winner back
            try:
                await write_equipment(
                    self._store, item, {"status": STATUS_DEPLOYED, "job_id": entry.job_id}
                )
            except Exception as e:
                self._report(f"Failed to restore {equipment_id} to {entry.job_id}", e)
            raise AllocationError(
                f"Equipment was allocated to {entry.job_id} concurrently",
                REASON_NOT_AVAILABLE,
            )

        existing = self._registry.get(equipment_id)
        record = AllocationRecord(
            equipment_id=equipment_id,
            job_id=job_id,
            job_name=job_name,
            status=EquipmentStatus.ALLOCATED,
        )
        if existing is not None and existing.job_id == job_id:
            # Re-allocation to the holder keeps the original age
            record.allocated_at = existing.allocated_at
        self._registry.set_allocation(record)
        logger.info("Equipment %s allocated to %s (%s)", equipment_id, job_name, job_id)
        self._schedule_refresh()
        return record

    async def release_equipment(self, equipment_id: str, job_id: str) -> None:
        """Release equipment from a job.

        Releasing equipment that is already free succeeds. Equipment missing
        from the store is released locally only. An open conflict naming the
        releasing job as holder is dropped with the allocation.

        Raises:
            AllocationError: If the registry or the store holds the equipment
                for another job.
            InventoryStoreError: If the store write failed.
        """
        try:
            item = await resolve_equipment(self._store, equipment_id)
        except Exception as e:
            self._report(f"Failed to release {equipment_id}", e)
            raise

        record = self._registry.get(equipment_id)
        if record is not None:
            holder = record.job_id
        elif item is not None and item.is_held:
            holder = item.job_id
        else:
            holder = None
        if holder not in (None, job_id):
            raise AllocationError(
                f"Equipment {equipment_id} is allocated to {holder}, not {job_id}"
            )

        if item is None:
            logger.warning("Releasing %s: not found in inventory", equipment_id)
        else:
            try:
                await write_equipment(
                    self._store, item, {"status": STATUS_AVAILABLE, "job_id": None}
                )
            except Exception as e:
                self._report(f"Failed to release {equipment_id}", e)
                raise

        self._registry.remove_allocation(equipment_id)
        conflict = self._conflicts.get(equipment_id)
        if conflict is not None and conflict.current_job_id == job_id:
            self._conflicts.remove_conflict(equipment_id)
        logger.info("Equipment %s released from %s", equipment_id, job_id)
        self._schedule_refresh()

    async def resolve_conflict(
        self,
        conflict: ConflictRecord,
        choice: ResolutionChoice | str,
    ) -> None:
        """Apply an explicit resolution decision.

        Raises:
            ConflictResolutionError: If the store writes failed (conflict kept),
                or another job now holds the equipment (conflict replaced).
            EquipmentNotFoundError: If the equipment left the store.
        """
        try:
            await self._conflicts.resolve(conflict, ResolutionChoice(choice))
        except Exception as e:
            self._report("Failed to resolve conflict", e)
            raise
        self._schedule_refresh()

    def clear_conflicts(self) -> int:
        """Drop every open conflict."""
        return self._conflicts.clear_conflicts()

    async def sync_job_equipment(
        self,
        job_id: str,
        job_name: str,
        equipment_ids: Iterable[str],
    ) -> BatchAllocationResult:
        """Allocate several pieces of equipment to one job.

        Each id is allocated on its own; a failure is recorded and the batch
        continues.
        """
        result = BatchAllocationResult(job_id=job_id)
        for equipment_id in dict.fromkeys(equipment_ids):
            try:
                await self.allocate_equipment(equipment_id, job_id, job_name)
            except AllocationError as e:
                result.failed[equipment_id] = e.reason or str(e)
            except Exception as e:
                result.failed[equipment_id] = str(e)
            else:
                result.succeeded.append(equipment_id)

        logger.info(
            "Job %s equipment synced: %d allocated, %d failed",
            job_id,
            len(result.succeeded),
            len(result.failed),
        )
        return result

    def apply_inventory_change(self, change: InventoryChange) -> None:
        """Apply a change pushed by the inventory store.

        A store-side assignment to a job other than the registered holder is
        recorded as a conflict rather than applied.
        """
        status = EquipmentStatus.from_store(change.status)
        existing = self._registry.get(change.equipment_id)

        if status.is_held and change.job_id:
            if existing is not None and existing.job_id != change.job_id:
                conflict = ConflictRecord(
                    equipment_id=change.equipment_id,
                    equipment_name=change.equipment_id,
                    current_job_id=existing.job_id,
                    current_job_name=existing.job_name,
                    requested_job_id=change.job_id,
                    requested_job_name=change.job_name or change.job_id,
                )
                self._add_conflict(conflict)
                return
            self._registry.set_allocation(
                AllocationRecord(
                    equipment_id=change.equipment_id,
                    job_id=change.job_id,
                    job_name=change.job_name
                    or (existing.job_name if existing else change.job_id),
                    allocated_at=existing.allocated_at if existing else utcnow(),
                    status=EquipmentStatus.ALLOCATED,
                )
            )
        elif status == EquipmentStatus.AVAILABLE:
            self._registry.remove_allocation(change.equipment_id)
        else:
            self._state_store.update(change.equipment_id, status=status)

        self._last_sync_at = utcnow()
        logger.debug("Applied inventory change: %s", change)

    # === Queries ===

    async def get_equipment_status(self, equipment_id: str) -> EquipmentStatus:
        """Get the freshest known status of a piece of equipment.

        State store first, then the inventory store, then UNAVAILABLE.
        """
        entry = self._state_store.get(equipment_id)
        if entry is not None:
            return entry.status
        try:
            item = await resolve_equipment(self._store, equipment_id)
        except Exception as e:
            self._report(f"Failed to read status of {equipment_id}", e)
            return EquipmentStatus.UNAVAILABLE
        if item is None:
            return EquipmentStatus.UNAVAILABLE
        return EquipmentStatus.from_store(item.status)

    async def get_job_equipment(self, job_id: str) -> list[str]:
        """List equipment assigned to a job, through the engine or directly.

        Raises:
            InventoryStoreError: If the store listing failed.
        """
        equipment = [r.equipment_id for r in self._registry.for_job(job_id)]
        seen = set(equipment)
        for item in await list_inventory(self._store):
            if item.job_id == job_id and item.equipment_id not in seen:
                # The registry is authoritative for ids it tracks
                record = self._registry.get(item.equipment_id)
                if record is not None and record.job_id != job_id:
                    continue
                equipment.append(item.equipment_id)
                seen.add(item.equipment_id)
        return equipment

    # === Reconciliation ===

    async def sync_inventory_status(self) -> SyncReport:
        """Repair drift between the registry and the inventory store.

        - Ledger ahead: every record is pushed to the store (deployed + job).
        - Store ahead: held items without a record are set available.

        Each write is best-effort; failures are reported and the pass goes
        on. Never raises.

        Returns:
            SyncReport for the pass.
        """
        self._sync_state = SyncState.SYNCING
        report = SyncReport()
        logger.debug("Inventory sync started")

        try:
            items = {i.equipment_id: i for i in await list_inventory(self._store)}
        except Exception as e:
            self._report(REASON_SYNC_FAILED, e)
            report.failures.append(SyncFailure("*", str(e)))
            return self._finish_sync(report)

        for record in self._registry.records():
            item = items.get(record.equipment_id)
            if item is None:
                report.failures.append(
                    SyncFailure(record.equipment_id, REASON_NOT_FOUND)
                )
                self._report(
                    f"{REASON_SYNC_FAILED}: {record.equipment_id} not in inventory", None
                )
                continue
            if item.status == STATUS_DEPLOYED and item.job_id == record.job_id:
                continue
            try:
                await write_equipment(
                    self._store,
                    item,
                    {"status": STATUS_DEPLOYED, "job_id": record.job_id},
                )
            except Exception as e:
                report.failures.append(SyncFailure(record.equipment_id, str(e)))
                self._report(REASON_SYNC_FAILED, e)
            else:
                report.pushed.append(record.equipment_id)

        for item in items.values():
            # Registry re-read per item: allocations may commit during the pass
            if not item.is_held or item.equipment_id in self._registry:
                continue
            try:
                await write_equipment(
                    self._store, item, {"status": STATUS_AVAILABLE, "job_id": None}
                )
            except Exception as e:
                report.failures.append(SyncFailure(item.equipment_id, str(e)))
                self._report(REASON_SYNC_FAILED, e)
            else:
                report.released.append(item.equipment_id)

        return self._finish_sync(report)

    def _finish_sync(self, report: SyncReport) -> SyncReport:
        report.finished_at = utcnow()
        self._last_report = report
        self._last_sync_at = report.finished_at
        self._sync_state = SyncState.IDLE if report.success else SyncState.ERROR

        if report.pushed or report.released:
            logger.info(
                "Inventory synced: %d pushed, %d released, %d failed (%.0fms)",
                len(report.pushed),
                len(report.released),
                len(report.failures),
                report.duration * 1000,
            )
            self._schedule_refresh()
        elif report.success:
            logger.debug("Inventory already in sync")
        else:
            logger.warning("Inventory sync finished with %d failures", len(report.failures))
        return report

    # === Internals ===

    def _schedule_refresh(self) -> None:
        """Ask the store to refresh after a short delay.

        Requests made while one is pending are folded into it.
        """
        if self._refresh_pending:
            return
        self._refresh_pending = True
        self._tasks.spawn(self._delayed_refresh(), "refresh")

    async def _delayed_refresh(self) -> None:
        try:
            if self._refresh_delay > 0:
                await asyncio.sleep(self._refresh_delay)
        finally:
            self._refresh_pending = False
        try:
            await self._store.refresh()
        except Exception as e:
            self._report("Failed to refresh inventory store", e)

    def _report(self, message: str, exc: Exception | None) -> None:
        """Log an error and forward it to the error callback."""
        if exc is not None:
            logger.error("%s: %s", message, exc, exc_info=exc)
        else:
            logger.error("%s", message)
        if self._on_error:
            try:
                self._on_error(message, exc)
            except Exception:
                logger.exception("Error callback failed")


def build_coordinator(store: InventoryStore, config: EngineConfig) -> SyncCoordinator:
    """Wire a coordinator with a persisted registry.

    Args:
        store: Inventory store backend.
        config: Engine configuration.

    Returns:
        A coordinator ready for start().
    """
    state_store = EquipmentStateStore()
    registry = AllocationRegistry(
        state_store,
        cache=AllocationCache(config.db_path),
        retention=config.retention,
    )
    return SyncCoordinator(
        store,
        state_store=state_store,
        registry=registry,
        conflict_manager=ConflictManager(registry, store),
        refresh_delay=config.refresh_delay,
    )
