"""Fixtures for server tests."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from allocsync.core.config import EngineConfig
from allocsync.engine.coordinator import SyncCoordinator, build_coordinator
from allocsync.inventory.memory import InMemoryInventoryStore
from allocsync.server.app import create_app


@pytest.fixture
def app_coordinator(tmp_path: Path, store: InMemoryInventoryStore) -> SyncCoordinator:
    """Create an unstarted coordinator over the seeded store."""
    config = EngineConfig(db_path=tmp_path / "allocations.db", refresh_delay=0)
    return build_coordinator(store, config)


@pytest.fixture
def client(app_coordinator: SyncCoordinator) -> Generator[TestClient, None, None]:
    """Create a test client with the app lifespan running."""
    app = create_app(app_coordinator)
    with TestClient(app) as test_client:
        yield test_client
