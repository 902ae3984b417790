"""Equipment validation, allocation and release API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from allocsync.engine.coordinator import SyncCoordinator
from allocsync.engine.types import AllocationError
from allocsync.inventory.base import InventoryStoreError
from allocsync.server.api.deps import get_coordinator
from allocsync.server.schemas import (
    AllocateRequest,
    AllocationResponse,
    EquipmentStatusResponse,
    ReleaseRequest,
    ValidateRequest,
    ValidateResponse,
    allocation_to_response,
    validation_to_response,
)

router = APIRouter(prefix="/api/equipment", tags=["equipment"])


@router.get("/{equipment_id}/status", response_model=EquipmentStatusResponse)
async def get_status(
    equipment_id: str,
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> EquipmentStatusResponse:
    """Get the current status of a piece of equipment."""
    equipment_status = await coordinator.get_equipment_status(equipment_id)
    entry = coordinator.state_store.get(equipment_id)
    return EquipmentStatusResponse(
        equipment_id=equipment_id,
        status=equipment_status.value,
        job_id=entry.job_id if entry else None,
    )


@router.post("/{equipment_id}/validate", response_model=ValidateResponse)
async def validate(
    equipment_id: str,
    request: ValidateRequest,
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> ValidateResponse:
    """Check whether equipment can be assigned to a job."""
    result = await coordinator.validate_equipment_availability(
        equipment_id,
        request.job_id,
        request.job_name,
        request.quantity,
    )
    return validation_to_response(result)


@router.post(
    "/{equipment_id}/allocate",
    response_model=AllocationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def allocate(
    equipment_id: str,
    request: AllocateRequest,
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> AllocationResponse:
    """Allocate equipment to a job."""
    try:
        record = await coordinator.allocate_equipment(
            equipment_id, request.job_id, request.job_name
        )
    except AllocationError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=e.reason or str(e),
        ) from e
    except InventoryStoreError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Inventory store error: {e}",
        ) from e
    return allocation_to_response(record)


@router.post("/{equipment_id}/release", status_code=status.HTTP_204_NO_CONTENT)
async def release(
    equipment_id: str,
    request: ReleaseRequest,
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> Response:
    """Release equipment from a job."""
    try:
        await coordinator.release_equipment(equipment_id, request.job_id)
    except AllocationError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        ) from e
    except InventoryStoreError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Inventory store error: {e}",
        ) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)
