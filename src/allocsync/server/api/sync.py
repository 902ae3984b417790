"""Reconciliation API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from allocsync.engine.coordinator import SyncCoordinator
from allocsync.server.api.deps import get_coordinator
from allocsync.server.schemas import (
    SyncReportResponse,
    SyncStatusResponse,
    report_to_response,
)

router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.post("", response_model=SyncReportResponse)
async def run_sync(
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> SyncReportResponse:
    """Run a reconciliation pass now."""
    report = await coordinator.sync_inventory_status()
    return report_to_response(report)


@router.get("/status", response_model=SyncStatusResponse)
def sync_status(
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> SyncStatusResponse:
    """Get the current sync state."""
    last_sync_at = coordinator.last_sync_at
    return SyncStatusResponse(
        state=coordinator.sync_state.value,
        last_sync_at=last_sync_at.isoformat() if last_sync_at else None,
        allocations=len(coordinator.registry),
        conflicts=len(coordinator.conflicts),
    )
