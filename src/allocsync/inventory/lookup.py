"""Polymorphic equipment lookup over the two store record kinds.

The store models individually tracked equipment and bulk items separately.
The engine sees both through one ``InventoryItem`` whose ``ref`` tells which
kind it is:

    IndividualRef(equipment_id)  -> find/update_individual_equipment
    BulkRef(type_id)             -> find/update_bulk_equipment_item,
                                    available_quantity_by_type
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from allocsync.inventory.base import (
    ASSIGNABLE_STATUSES,
    HELD_STATUSES,
    BulkEquipmentItem,
    IndividualEquipment,
)

if TYPE_CHECKING:
    from allocsync.inventory.base import InventoryStore


@dataclass(frozen=True)
class IndividualRef:
    """Reference to individually tracked equipment."""

    equipment_id: str


@dataclass(frozen=True)
class BulkRef:
    """Reference to a bulk item, counted by type."""

    type_id: str


EquipmentRef = IndividualRef | BulkRef


@dataclass(frozen=True)
class InventoryItem:
    """Store view of one piece of equipment, whatever its kind."""

    equipment_id: str
    name: str
    status: str
    job_id: str | None
    ref: EquipmentRef
    quantity: int = 1

    @property
    def is_held(self) -> bool:
        """True if the store shows the item assigned to a job."""
        return self.status in HELD_STATUSES

    @property
    def is_assignable(self) -> bool:
        """False for hard-unavailable states (maintenance, red-tagged, ...)."""
        return self.status in ASSIGNABLE_STATUSES

    @classmethod
    def from_individual(cls, equipment: IndividualEquipment) -> InventoryItem:
        return cls(
            equipment_id=equipment.id,
            name=equipment.name,
            status=equipment.status,
            job_id=equipment.job_id,
            ref=IndividualRef(equipment.id),
        )

    @classmethod
    def from_bulk(cls, item: BulkEquipmentItem) -> InventoryItem:
        return cls(
            equipment_id=item.id,
            name=item.name or item.id,
            status=item.status,
            job_id=item.job_id,
            ref=BulkRef(item.type_id),
            quantity=item.quantity,
        )


async def resolve_equipment(
    store: InventoryStore, equipment_id: str
) -> InventoryItem | None:
    """Find equipment by id in either path of the store.

    Both lookups run concurrently. Individually tracked equipment wins when
    an id exists in both.

    Args:
        store: Inventory store to query.
        equipment_id: Equipment id.

    Returns:
        InventoryItem, or None if the store knows neither kind.
    """
    individual, bulk = await asyncio.gather(
        store.find_individual_equipment(equipment_id),
        store.find_bulk_equipment_item(equipment_id),
    )
    if individual is not None:
        return InventoryItem.from_individual(individual)
    if bulk is not None:
        return InventoryItem.from_bulk(bulk)
    return None


async def list_inventory(store: InventoryStore) -> list[InventoryItem]:
    """List every item the store knows, individual items first."""
    individuals, bulk_items = await asyncio.gather(
        store.list_individual_equipment(),
        store.list_bulk_equipment_items(),
    )
    items = [InventoryItem.from_individual(e) for e in individuals]
    items.extend(InventoryItem.from_bulk(b) for b in bulk_items)
    return items


async def write_equipment(
    store: InventoryStore,
    item: InventoryItem,
    changes: dict[str, Any],
) -> None:
    """Write a partial update through the path matching the item's kind.

    Raises:
        Whatever the store raises; write failures are never swallowed here.
    """
    if isinstance(item.ref, IndividualRef):
        await store.update_individual_equipment(item.equipment_id, changes)
    else:
        await store.update_bulk_equipment_item(item.equipment_id, changes)


async def available_quantity(store: InventoryStore, item: InventoryItem) -> int | None:
    """Free quantity for bulk items; None for individually tracked ones."""
    if isinstance(item.ref, BulkRef):
        return await store.available_quantity_by_type(item.ref.type_id)
    return None
