"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from pydantic import BaseModel, Field

from allocsync.core.types import ResolutionChoice
from allocsync.engine.types import (
    AllocationRecord,
    ConflictRecord,
    EquipmentStateEntry,
    SyncReport,
    ValidationResult,
)

# === Equipment schemas ===


class ValidateRequest(BaseModel):
    """Request body for an availability check."""

    job_id: str
    job_name: str | None = None
    quantity: int = Field(default=1, ge=1)


class AllocateRequest(BaseModel):
    """Request body for allocation."""

    job_id: str
    job_name: str


class ReleaseRequest(BaseModel):
    """Request body for release."""

    job_id: str


class EquipmentStatusResponse(BaseModel):
    """Current status of a piece of equipment."""

    equipment_id: str
    status: str
    job_id: str | None = None


class EquipmentStateMessage(BaseModel):
    """State change pushed over WebSocket."""

    type: str = "equipment_state"
    equipment_id: str
    status: str
    job_id: str | None
    last_updated: str


# === Allocation schemas ===


class AllocationResponse(BaseModel):
    """Allocation data in responses."""

    equipment_id: str
    job_id: str
    job_name: str
    allocated_at: str
    status: str


class JobEquipmentResponse(BaseModel):
    """Equipment assigned to a job."""

    job_id: str
    equipment_ids: list[str]


class JobEquipmentRequest(BaseModel):
    """Request body for batch job assignment."""

    job_name: str
    equipment_ids: list[str]


class BatchAllocationResponse(BaseModel):
    """Result of a batch job assignment."""

    job_id: str
    succeeded: list[str]
    failed: dict[str, str]


# === Conflict schemas ===


class ConflictResponse(BaseModel):
    """Conflict data in responses."""

    equipment_id: str
    equipment_name: str
    current_job_id: str
    current_job_name: str
    requested_job_id: str
    requested_job_name: str
    timestamp: str


class ResolveConflictRequest(BaseModel):
    """Request body for conflict resolution."""

    choice: ResolutionChoice


class ValidateResponse(BaseModel):
    """Result of an availability check."""

    available: bool
    outcome: str
    reason: str | None = None
    conflict: ConflictResponse | None = None


class ClearConflictsResponse(BaseModel):
    """Response for clearing conflicts."""

    cleared: int


# === Sync schemas ===


class SyncFailureResponse(BaseModel):
    """One failed store write."""

    equipment_id: str
    error: str


class SyncReportResponse(BaseModel):
    """Result of a reconciliation pass."""

    success: bool
    pushed: list[str]
    released: list[str]
    failures: list[SyncFailureResponse]
    started_at: str
    finished_at: str | None
    duration: float


class SyncStatusResponse(BaseModel):
    """Current sync status."""

    state: str
    last_sync_at: str | None
    allocations: int
    conflicts: int


class InventoryChangeRequest(BaseModel):
    """Change pushed by the inventory store."""

    equipment_id: str
    status: str
    job_id: str | None = None
    job_name: str | None = None


# === Health schema ===


class HealthResponse(BaseModel):
    """Health check response."""

    status: str


# === Converters ===


def allocation_to_response(record: AllocationRecord) -> AllocationResponse:
    """Convert AllocationRecord to AllocationResponse."""
    return AllocationResponse(**record.to_dict())


def conflict_to_response(record: ConflictRecord) -> ConflictResponse:
    """Convert ConflictRecord to ConflictResponse."""
    return ConflictResponse(**record.to_dict())


def validation_to_response(result: ValidationResult) -> ValidateResponse:
    """Convert ValidationResult to ValidateResponse."""
    return ValidateResponse(
        available=result.available,
        outcome=result.outcome.name.lower(),
        reason=result.reason,
        conflict=conflict_to_response(result.conflict) if result.conflict else None,
    )


def state_to_message(entry: EquipmentStateEntry) -> EquipmentStateMessage:
    """Convert EquipmentStateEntry to a WebSocket message."""
    return EquipmentStateMessage(**entry.to_dict())


def report_to_response(report: SyncReport) -> SyncReportResponse:
    """Convert SyncReport to SyncReportResponse."""
    return SyncReportResponse(
        success=report.success,
        pushed=report.pushed,
        released=report.released,
        failures=[
            SyncFailureResponse(equipment_id=f.equipment_id, error=f.error)
            for f in report.failures
        ],
        started_at=report.started_at.isoformat(),
        finished_at=report.finished_at.isoformat() if report.finished_at else None,
        duration=report.duration,
    )
