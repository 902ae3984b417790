"""Inventory change feed API route."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from allocsync.engine.coordinator import SyncCoordinator
from allocsync.engine.types import InventoryChange
from allocsync.server.api.deps import get_coordinator
from allocsync.server.schemas import InventoryChangeRequest

router = APIRouter(prefix="/api/inventory", tags=["inventory"])


@router.post("/changes", status_code=status.HTTP_204_NO_CONTENT)
async def push_changes(
    changes: list[InventoryChangeRequest],
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> Response:
    """Apply changes pushed by the inventory store, in order."""
    for change in changes:
        coordinator.apply_inventory_change(
            InventoryChange(
                equipment_id=change.equipment_id,
                status=change.status,
                job_id=change.job_id,
                job_name=change.job_name,
            )
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
