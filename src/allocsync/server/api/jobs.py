"""Job equipment API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from allocsync.engine.coordinator import SyncCoordinator
from allocsync.inventory.base import InventoryStoreError
from allocsync.server.api.deps import get_coordinator
from allocsync.server.schemas import (
    BatchAllocationResponse,
    JobEquipmentRequest,
    JobEquipmentResponse,
)

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


@router.get("/{job_id}/equipment", response_model=JobEquipmentResponse)
async def get_job_equipment(
    job_id: str,
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> JobEquipmentResponse:
    """List equipment assigned to a job."""
    try:
        equipment_ids = await coordinator.get_job_equipment(job_id)
    except InventoryStoreError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Inventory store error: {e}",
        ) from e
    return JobEquipmentResponse(job_id=job_id, equipment_ids=equipment_ids)


@router.post("/{job_id}/equipment", response_model=BatchAllocationResponse)
async def assign_job_equipment(
    job_id: str,
    request: JobEquipmentRequest,
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> BatchAllocationResponse:
    """Allocate several pieces of equipment to a job.

    Per-item failures are reported in the response, not as an error status.
    """
    result = await coordinator.sync_job_equipment(
        job_id, request.job_name, request.equipment_ids
    )
    return BatchAllocationResponse(
        job_id=result.job_id,
        succeeded=result.succeeded,
        failed=result.failed,
    )
