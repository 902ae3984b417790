"""FastAPI application for the allocation server.

This module creates and configures the FastAPI application with:
- REST API for validation, allocation, conflicts and reconciliation
- WebSocket feed of equipment state changes

Usage:
    uvicorn allocsync.server.app:app_factory --factory --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from allocsync import __version__
from allocsync.core.config import EngineConfig, InventoryConfig
from allocsync.engine.coordinator import SyncCoordinator, build_coordinator
from allocsync.engine.scheduler import ReconciliationScheduler
from allocsync.inventory.base import InventoryStore
from allocsync.inventory.http import HTTPInventoryStore
from allocsync.inventory.memory import InMemoryInventoryStore
from allocsync.server.api.router import router as api_router
from allocsync.server.ws import EquipmentHub
from allocsync.server.ws import router as ws_router

# Configuration from environment variables with defaults
LOG_PATH = Path(os.environ.get("ALLOCSYNC_LOG_PATH", "allocsync-server.log"))
SEED_PATH = os.environ.get("ALLOCSYNC_SEED_PATH")

logger = logging.getLogger(__name__)


def setup_logging(log_path: Path | None) -> None:
    """Configure logging to output to both file and stdout.

    Args:
        log_path: Path to the log file (None logs to stdout only).
    """
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = logging.Formatter(log_format)

    # Root logger for allocsync
    root_logger = logging.getLogger("allocsync")
    root_logger.setLevel(logging.INFO)

    # Stdout handler
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    if log_path is None:
        return

    # File handler
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # Also capture uvicorn logs to file
    for uvicorn_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(uvicorn_name)
        uvicorn_logger.addHandler(file_handler)


def build_store(
    inventory: InventoryConfig | None,
    seed_path: Path | None = None,
) -> InventoryStore:
    """Create the inventory store backend.

    Args:
        inventory: Remote store settings (None selects the in-memory store).
        seed_path: JSON file seeding the in-memory store.

    Returns:
        InventoryStore instance.
    """
    if inventory is not None:
        logger.info("Using inventory store at %s", inventory.base_url)
        return HTTPInventoryStore(inventory)
    if seed_path is not None:
        logger.info("Using in-memory inventory seeded from %s", seed_path)
        return InMemoryInventoryStore.from_file(seed_path)
    logger.warning("No inventory store configured, using an empty in-memory store")
    return InMemoryInventoryStore()


def create_app(
    coordinator: SyncCoordinator,
    scheduler: ReconciliationScheduler | None = None,
) -> FastAPI:
    """Create FastAPI application around a coordinator.

    This is primarily used for testing with isolated stores.

    Args:
        coordinator: Sync coordinator (not yet started).
        scheduler: Optional reconciliation scheduler.

    Returns:
        Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        # Startup
        restored = await coordinator.start()
        logger.info("=" * 60)
        logger.info("AllocSync Server Starting")
        logger.info("=" * 60)
        logger.info("  Allocations restored: %d", restored)
        if scheduler:
            scheduler.start()
        else:
            logger.info("  Reconciliation:       manual only")
        logger.info("=" * 60)

        yield

        # Shutdown
        logger.info("AllocSync Server shutting down")
        if scheduler:
            scheduler.stop()
        await coordinator.stop()
        if isinstance(coordinator.store, HTTPInventoryStore):
            await coordinator.store.aclose()

    application = FastAPI(
        title="AllocSync Server",
        description="Equipment allocation conflict engine",
        version=__version__,
        lifespan=lifespan,
    )

    application.state.coordinator = coordinator
    application.state.scheduler = scheduler
    application.state.hub = EquipmentHub(coordinator.state_store)

    application.include_router(api_router)
    application.include_router(ws_router)

    return application


def app_factory() -> FastAPI:
    """Factory function for uvicorn --factory mode."""
    setup_logging(LOG_PATH)
    config = EngineConfig.from_env()
    store = build_store(
        InventoryConfig.from_env(),
        Path(SEED_PATH) if SEED_PATH else None,
    )
    coordinator = build_coordinator(store, config)
    scheduler = ReconciliationScheduler(
        coordinator,
        interval=config.sync_interval,
        run_on_start=config.sync_on_startup,
    )
    return create_app(coordinator, scheduler)
