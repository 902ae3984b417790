"""Allocation listing API route."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from allocsync.engine.coordinator import SyncCoordinator
from allocsync.server.api.deps import get_coordinator
from allocsync.server.schemas import AllocationResponse, allocation_to_response

router = APIRouter(prefix="/api/allocations", tags=["allocations"])


@router.get("", response_model=list[AllocationResponse])
def list_allocations(
    job_id: str | None = None,
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> list[AllocationResponse]:
    """List active allocations, optionally for one job."""
    registry = coordinator.registry
    records = registry.for_job(job_id) if job_id else registry.records()
    return [allocation_to_response(r) for r in records]
