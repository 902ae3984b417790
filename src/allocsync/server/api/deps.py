"""FastAPI dependencies for API routes."""

from __future__ import annotations

from fastapi import Request

from allocsync.engine.coordinator import SyncCoordinator
from allocsync.engine.scheduler import ReconciliationScheduler


def get_coordinator(request: Request) -> SyncCoordinator:
    """Get sync coordinator from app state."""
    coordinator: SyncCoordinator = request.app.state.coordinator
    return coordinator


def get_scheduler(request: Request) -> ReconciliationScheduler | None:
    """Get reconciliation scheduler from app state (None when disabled)."""
    scheduler: ReconciliationScheduler | None = request.app.state.scheduler
    return scheduler
