"""Conflict listing and resolution API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from allocsync.engine.coordinator import SyncCoordinator
from allocsync.engine.types import ConflictResolutionError, EquipmentNotFoundError
from allocsync.inventory.base import InventoryStoreError
from allocsync.server.api.deps import get_coordinator
from allocsync.server.schemas import (
    ClearConflictsResponse,
    ConflictResponse,
    ResolveConflictRequest,
    conflict_to_response,
)

router = APIRouter(prefix="/api/conflicts", tags=["conflicts"])


@router.get("", response_model=list[ConflictResponse])
def list_conflicts(
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> list[ConflictResponse]:
    """List open conflicts, oldest first."""
    return [conflict_to_response(c) for c in coordinator.conflicts]


@router.delete("", response_model=ClearConflictsResponse)
async def clear_conflicts(
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> ClearConflictsResponse:
    """Drop every open conflict without touching allocations."""
    return ClearConflictsResponse(cleared=coordinator.clear_conflicts())


@router.post("/{equipment_id}/resolve", status_code=status.HTTP_204_NO_CONTENT)
async def resolve_conflict(
    equipment_id: str,
    request: ResolveConflictRequest,
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> Response:
    """Resolve the open conflict for a piece of equipment."""
    conflict = coordinator.conflict_manager.get(equipment_id)
    if conflict is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No open conflict for {equipment_id}",
        )

    try:
        await coordinator.resolve_conflict(conflict, request.choice)
    except EquipmentNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e
    except (ConflictResolutionError, InventoryStoreError) as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(e),
        ) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)
