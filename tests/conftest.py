"""Shared fixtures for allocsync tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio

from allocsync.engine.conflicts import ConflictManager
from allocsync.engine.coordinator import SyncCoordinator
from allocsync.engine.persistence import AllocationCache
from allocsync.engine.registry import AllocationRegistry
from allocsync.engine.state_store import EquipmentStateStore
from allocsync.inventory.base import BulkEquipmentItem, IndividualEquipment
from allocsync.inventory.memory import InMemoryInventoryStore


def make_store() -> InMemoryInventoryStore:
    """Inventory with two free units, one in maintenance, and cable stock."""
    return InMemoryInventoryStore(
        individual_equipment=[
            IndividualEquipment("eq-1", "Starlink 1", "available"),
            IndividualEquipment("eq-2", "Starlink 2", "available"),
            IndividualEquipment("eq-maint", "Generator 3", "maintenance"),
        ],
        equipment_items=[
            BulkEquipmentItem("item-1", "cable-100", "available", quantity=4, name="Cat6 100ft"),
        ],
    )


@pytest.fixture
def store() -> InMemoryInventoryStore:
    """Create a seeded in-memory inventory store."""
    return make_store()


@pytest.fixture
def state_store() -> EquipmentStateStore:
    """Create an empty state store."""
    return EquipmentStateStore()


@pytest.fixture
def cache(tmp_path: Path) -> AllocationCache:
    """Create a test allocation cache."""
    cache = AllocationCache(tmp_path / "allocations.db")
    yield cache
    cache.close()


@pytest.fixture
def registry(state_store: EquipmentStateStore, cache: AllocationCache) -> AllocationRegistry:
    """Create a persisted registry."""
    return AllocationRegistry(state_store, cache=cache)


@pytest_asyncio.fixture
async def coordinator(
    store: InMemoryInventoryStore,
    state_store: EquipmentStateStore,
    registry: AllocationRegistry,
) -> AsyncGenerator[SyncCoordinator, None]:
    """Create a started coordinator without refresh delay."""
    coordinator = SyncCoordinator(
        store,
        state_store=state_store,
        registry=registry,
        conflict_manager=ConflictManager(registry, store),
        refresh_delay=0,
    )
    await coordinator.start()
    yield coordinator
    await coordinator.stop()
