"""Engine module - State store, allocation registry, conflicts and sync."""

from allocsync.engine.conflicts import ConflictManager
from allocsync.engine.coordinator import SyncCoordinator, build_coordinator
from allocsync.engine.persistence import AllocationCache
from allocsync.engine.registry import AllocationRegistry
from allocsync.engine.scheduler import ReconciliationScheduler
from allocsync.engine.state_store import EquipmentStateStore
from allocsync.engine.types import (
    AllocationError,
    AllocationRecord,
    AllocationSyncError,
    BatchAllocationResult,
    ConflictRecord,
    ConflictResolutionError,
    EquipmentNotFoundError,
    EquipmentStateEntry,
    EquipmentStatus,
    InventoryChange,
    SyncReport,
    ValidationOutcome,
    ValidationResult,
)

__all__ = [
    # Components
    "AllocationCache",
    "AllocationRegistry",
    "ConflictManager",
    "EquipmentStateStore",
    "ReconciliationScheduler",
    "SyncCoordinator",
    "build_coordinator",
    # Errors
    "AllocationError",
    "AllocationSyncError",
    "ConflictResolutionError",
    "EquipmentNotFoundError",
    # Types
    "AllocationRecord",
    "BatchAllocationResult",
    "ConflictRecord",
    "EquipmentStateEntry",
    "EquipmentStatus",
    "InventoryChange",
    "SyncReport",
    "ValidationOutcome",
    "ValidationResult",
]
