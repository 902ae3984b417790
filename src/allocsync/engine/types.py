"""Shared types and dataclasses for the allocation engine.

This module provides:
- AllocationSyncError, AllocationError, ConflictResolutionError,
  EquipmentNotFoundError: Exception classes
- EquipmentStatus: Engine-level equipment status
- EquipmentStateEntry: Last-known status of one piece of equipment
- AllocationRecord: An allocation made through the engine
- ConflictRecord: A detected mutual-exclusion violation
- ValidationOutcome, ValidationResult: Result of an availability check
- SyncReport: Result of one reconciliation pass
- BatchAllocationResult: Result of a batch job assignment
- InventoryChange: A store-side change pushed to the engine
- Type aliases for callbacks
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum, auto
from typing import Any


class AllocationSyncError(Exception):
    """Base exception for engine errors."""


class AllocationError(AllocationSyncError):
    """Equipment could not be allocated or released.

    Attributes:
        reason: Validation reason behind the rejection, if any.
    """

    def __init__(self, message: str, reason: str | None = None) -> None:
        super().__init__(message)
        self.reason = reason


class ConflictResolutionError(AllocationSyncError):
    """Applying a conflict resolution failed; the conflict is still open."""


class EquipmentNotFoundError(AllocationSyncError):
    """Equipment is not known to the inventory store."""


class EquipmentStatus(str, Enum):
    """Status of equipment as the engine reports it."""

    AVAILABLE = "available"
    ALLOCATED = "allocated"
    DEPLOYED = "deployed"
    UNAVAILABLE = "unavailable"

    @classmethod
    def from_store(cls, status: str) -> EquipmentStatus:
        """Map a store status; anything unknown is unavailable."""
        try:
            value = cls(status)
        except ValueError:
            return cls.UNAVAILABLE
        return value

    @property
    def is_held(self) -> bool:
        return self in (EquipmentStatus.ALLOCATED, EquipmentStatus.DEPLOYED)


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class EquipmentStateEntry:
    """Last-known status of a piece of equipment.

    Attributes:
        equipment_id: Equipment id.
        status: Current status.
        job_id: Job holding the equipment, if any.
        last_updated: When the entry last changed.
    """

    equipment_id: str
    status: EquipmentStatus = EquipmentStatus.AVAILABLE
    job_id: str | None = None
    last_updated: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, str | None]:
        """Convert to JSON-serializable dict."""
        return {
            "equipment_id": self.equipment_id,
            "status": self.status.value,
            "job_id": self.job_id,
            "last_updated": self.last_updated.isoformat(),
        }


@dataclass
class AllocationRecord:
    """Active association between one equipment id and one job.

    Attributes:
        equipment_id: Equipment id (registry key).
        job_id: Job holding the equipment.
        job_name: Display name of the job.
        allocated_at: When the allocation was made.
        status: ALLOCATED or DEPLOYED.
    """

    equipment_id: str
    job_id: str
    job_name: str
    allocated_at: datetime = field(default_factory=utcnow)
    status: EquipmentStatus = EquipmentStatus.ALLOCATED

    def is_expired(self, retention: timedelta, now: datetime | None = None) -> bool:
        """Check whether the record is older than the retention window."""
        return (now or utcnow()) - self.allocated_at >= retention

    def to_row(self) -> tuple[str, str, str, float, str]:
        """Convert to a persisted cache row."""
        return (
            self.equipment_id,
            self.job_id,
            self.job_name,
            self.allocated_at.timestamp(),
            self.status.value,
        )

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> AllocationRecord:
        """Create from a persisted cache row.

        Raises:
            ValueError: If the row is malformed.
        """
        if len(row) != 5:
            raise ValueError(f"Expected 5 fields, got {len(row)}")
        equipment_id, job_id, job_name, allocated_at, status = row
        if not equipment_id or not job_id:
            raise ValueError("equipment_id and job_id are required")
        if allocated_at is None:
            raise ValueError("allocated_at is required")
        record_status = EquipmentStatus(status)
        if not record_status.is_held:
            raise ValueError(f"Invalid allocation status: {status}")
        return cls(
            equipment_id=str(equipment_id),
            job_id=str(job_id),
            job_name=str(job_name or job_id),
            allocated_at=datetime.fromtimestamp(float(allocated_at), UTC),
            status=record_status,
        )

    def to_dict(self) -> dict[str, str]:
        """Convert to JSON-serializable dict."""
        return {
            "equipment_id": self.equipment_id,
            "job_id": self.job_id,
            "job_name": self.job_name,
            "allocated_at": self.allocated_at.isoformat(),
            "status": self.status.value,
        }


# Display name for a holder the registry has no record for
UNKNOWN_JOB_NAME = "Unknown Job"


@dataclass
class ConflictRecord:
    """Attempted violation of mutual exclusion, awaiting explicit resolution."""

    equipment_id: str
    equipment_name: str
    current_job_id: str
    current_job_name: str
    requested_job_id: str
    requested_job_name: str
    timestamp: datetime = field(default_factory=utcnow)

    def same_request(self, other: ConflictRecord) -> bool:
        """Check whether two records describe the same holder and requester."""
        return (
            self.equipment_id == other.equipment_id
            and self.current_job_id == other.current_job_id
            and self.requested_job_id == other.requested_job_id
        )

    def to_dict(self) -> dict[str, str]:
        """Convert to JSON-serializable dict."""
        return {
            "equipment_id": self.equipment_id,
            "equipment_name": self.equipment_name,
            "current_job_id": self.current_job_id,
            "current_job_name": self.current_job_name,
            "requested_job_id": self.requested_job_id,
            "requested_job_name": self.requested_job_name,
            "timestamp": self.timestamp.isoformat(),
        }


class ValidationOutcome(Enum):
    """Terminal state of one availability check."""

    AVAILABLE = auto()
    CONFLICTED = auto()  # Held by another job, conflict recorded
    UNAVAILABLE = auto()  # Hard-unavailable store status
    NOT_FOUND = auto()
    INSUFFICIENT_QUANTITY = auto()
    VALIDATION_FAILED = auto()  # Store error, fail closed


@dataclass
class ValidationResult:
    """Result of validate_equipment_availability.

    Truthy only when the equipment can be assigned to the requested job.
    """

    outcome: ValidationOutcome
    reason: str | None = None
    conflict: ConflictRecord | None = None

    @property
    def available(self) -> bool:
        return self.outcome == ValidationOutcome.AVAILABLE

    def __bool__(self) -> bool:
        return self.available


@dataclass
class SyncFailure:
    """One store write that failed during reconciliation."""

    equipment_id: str
    error: str


@dataclass
class SyncReport:
    """Result of one reconciliation pass."""

    pushed: list[str] = field(default_factory=list)  # Ledger-ahead repairs
    released: list[str] = field(default_factory=list)  # Store-ahead repairs
    failures: list[SyncFailure] = field(default_factory=list)
    started_at: datetime = field(default_factory=utcnow)
    finished_at: datetime | None = None

    @property
    def success(self) -> bool:
        return not self.failures

    @property
    def duration(self) -> float:
        """Duration in seconds (0 while running)."""
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()


@dataclass
class BatchAllocationResult:
    """Result of assigning several pieces of equipment to one job."""

    job_id: str
    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)  # equipment_id -> reason


@dataclass
class InventoryChange:
    """A change the inventory store pushed to the engine."""

    equipment_id: str
    status: str
    job_id: str | None = None
    job_name: str | None = None


# Type aliases for callbacks
StateCallback = Callable[[EquipmentStateEntry], None]
ConflictCallback = Callable[[ConflictRecord], None]
ErrorCallback = Callable[[str, Exception | None], None]
