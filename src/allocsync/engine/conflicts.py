"""Conflict tracking and resolution.

A conflict is recorded when validation finds equipment held by one job while
another job asks for it. Conflicts are resolved only by an explicit caller
decision; the engine never picks a winner on its own.

Resolution choices:
    | Choice    | Store writes                              | Registry              |
    |-----------|-------------------------------------------|-----------------------|
    | CURRENT   | none                                      | unchanged             |
    | REQUESTED | release from current job, then deploy to  | record for requested  |
    |           | requested job                             | job (after both)      |

A REQUESTED resolution checks the holder before writing and again after:
equipment held by a job the conflict does not name is never moved; the
conflict is replaced with one naming that job instead.

A REQUESTED resolution that fails part-way (released but not redeployed)
keeps the conflict open and raises. Calling resolve again retries both
writes; nothing is rolled back automatically.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from allocsync.core.types import ResolutionChoice
from allocsync.engine.types import (
    UNKNOWN_JOB_NAME,
    AllocationRecord,
    ConflictRecord,
    ConflictResolutionError,
    EquipmentNotFoundError,
    EquipmentStatus,
)
from allocsync.inventory.base import STATUS_AVAILABLE, STATUS_DEPLOYED
from allocsync.inventory.lookup import resolve_equipment, write_equipment

if TYPE_CHECKING:
    from allocsync.engine.registry import AllocationRegistry
    from allocsync.inventory.base import InventoryStore
    from allocsync.inventory.lookup import InventoryItem

logger = logging.getLogger(__name__)


class ConflictManager:
    """Ordered set of open conflicts, at most one per equipment id."""

    def __init__(self, registry: AllocationRegistry, store: InventoryStore) -> None:
        """Initialize the manager.

        Args:
            registry: Registry receiving the winning allocation.
            store: Inventory store for resolution write-through.
        """
        self._registry = registry
        self._store = store
        self._conflicts: list[ConflictRecord] = []

    @property
    def conflicts(self) -> tuple[ConflictRecord, ...]:
        """Read-only ordered snapshot of open conflicts."""
        return tuple(self._conflicts)

    def __len__(self) -> int:
        return len(self._conflicts)

    def get(self, equipment_id: str) -> ConflictRecord | None:
        """Get the open conflict for an id."""
        for conflict in self._conflicts:
            if conflict.equipment_id == equipment_id:
                return conflict
        return None

    def add_conflict(self, record: ConflictRecord) -> None:
        """Record a conflict, replacing any existing one for the same id."""
        for index, existing in enumerate(self._conflicts):
            if existing.equipment_id == record.equipment_id:
                self._conflicts[index] = record
                logger.debug("Conflict replaced for %s", record.equipment_id)
                return
        self._conflicts.append(record)
        logger.info(
            "Conflict on %s: held by %s, requested by %s",
            record.equipment_id,
            record.current_job_id,
            record.requested_job_id,
        )

    def remove_conflict(self, equipment_id: str) -> bool:
        """Drop the conflict for an id.

        Returns:
            True if a conflict was removed.
        """
        before = len(self._conflicts)
        self._conflicts = [c for c in self._conflicts if c.equipment_id != equipment_id]
        return len(self._conflicts) != before

    def discard(self, conflict: ConflictRecord) -> bool:
        """Drop the open conflict for an id only if it is the same request.

        A newer conflict recorded for the id (another holder or requester)
        is left in place.

        Returns:
            True if a conflict was removed.
        """
        current = self.get(conflict.equipment_id)
        if current is None or not current.same_request(conflict):
            return False
        self._conflicts.remove(current)
        return True

    def clear_conflicts(self) -> int:
        """Drop every open conflict.

        Returns:
            Number of conflicts dropped.
        """
        count = len(self._conflicts)
        self._conflicts = []
        if count:
            logger.info("Cleared %d conflicts", count)
        return count

    def _holder(self, item: InventoryItem) -> str | None:
        record = self._registry.get(item.equipment_id)
        if record is not None:
            return record.job_id
        if item.is_held and item.job_id:
            return item.job_id
        return None

    def _supersede(
        self, conflict: ConflictRecord, item: InventoryItem, holder: str
    ) -> ConflictRecord:
        """Replace a stale conflict with one naming the actual holder."""
        record = self._registry.get(item.equipment_id)
        fresh = ConflictRecord(
            equipment_id=conflict.equipment_id,
            equipment_name=item.name,
            current_job_id=holder,
            current_job_name=(
                record.job_name
                if record is not None and record.job_id == holder
                else UNKNOWN_JOB_NAME
            ),
            requested_job_id=conflict.requested_job_id,
            requested_job_name=conflict.requested_job_name,
        )
        self.add_conflict(fresh)
        return fresh

    async def resolve(
        self,
        conflict: ConflictRecord,
        choice: ResolutionChoice,
    ) -> None:
        """Apply a resolution decision.

        Args:
            conflict: The conflict to resolve.
            choice: CURRENT keeps the holder, REQUESTED moves the equipment.

        Raises:
            EquipmentNotFoundError: If the equipment left the store.
            ConflictResolutionError: If a store write failed (the conflict
                stays open), or the equipment is now held by a job the
                conflict does not name (the conflict is replaced).
        """
        choice = ResolutionChoice(choice)
        if choice == ResolutionChoice.CURRENT:
            self.discard(conflict)
            logger.info(
                "Conflict on %s resolved: kept %s",
                conflict.equipment_id,
                conflict.current_job_id,
            )
            return

        item = await resolve_equipment(self._store, conflict.equipment_id)
        if item is None:
            raise EquipmentNotFoundError(
                f"Equipment not found in inventory: {conflict.equipment_id}"
            )

        holder = self._holder(item)
        if holder not in (None, conflict.current_job_id, conflict.requested_job_id):
            self._supersede(conflict, item, holder)
            raise ConflictResolutionError(
                f"{conflict.equipment_id} is now held by {holder}, "
                f"not {conflict.current_job_id}"
            )

        try:
            await write_equipment(
                self._store, item, {"status": STATUS_AVAILABLE, "job_id": None}
            )
        except Exception as e:
            raise ConflictResolutionError(
                f"Failed to release {conflict.equipment_id} "
                f"from {conflict.current_job_id}: {e}"
            ) from e

        try:
            await write_equipment(
                self._store,
                item,
                {"status": STATUS_DEPLOYED, "job_id": conflict.requested_job_id},
            )
        except Exception as e:
            logger.warning(
                "%s released from %s but not deployed to %s; conflict kept open",
                conflict.equipment_id,
                conflict.current_job_id,
                conflict.requested_job_id,
            )
            raise ConflictResolutionError(
                f"Failed to allocate {conflict.equipment_id} "
                f"to {conflict.requested_job_id}: {e}"
            ) from e

        # Re-read after the writes: an allocation may have committed meanwhile
        record = self._registry.get(conflict.equipment_id)
        if record is not None and record.job_id not in (
            conflict.current_job_id,
            conflict.requested_job_id,
        ):
            self._supersede(conflict, item, record.job_id)
            try:
                await write_equipment(
                    self._store, item, {"status": STATUS_DEPLOYED, "job_id": record.job_id}
                )
            except Exception as e:
                logger.error(
                    "Failed to restore %s to %s: %s", conflict.equipment_id, record.job_id, e
                )
            raise ConflictResolutionError(
                f"{conflict.equipment_id} was allocated to {record.job_id} "
                f"during resolution"
            )

        self._registry.set_allocation(
            AllocationRecord(
                equipment_id=conflict.equipment_id,
                job_id=conflict.requested_job_id,
                job_name=conflict.requested_job_name,
                status=EquipmentStatus.ALLOCATED,
            )
        )
        self.discard(conflict)
        logger.info(
            "Conflict on %s resolved: moved from %s to %s",
            conflict.equipment_id,
            conflict.current_job_id,
            conflict.requested_job_id,
        )
