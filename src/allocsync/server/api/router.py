"""Main API router that includes all sub-routers."""

from __future__ import annotations

from fastapi import APIRouter

from allocsync.server.api import allocations, conflicts, equipment, health, inventory, jobs, sync

router = APIRouter()

# Include all API routers
router.include_router(health.router)
router.include_router(equipment.router)
router.include_router(jobs.router)
router.include_router(allocations.router)
router.include_router(conflicts.router)
router.include_router(sync.router)
router.include_router(inventory.router)
