"""In-process inventory store.

Keeps equipment records in dictionaries. Used when the engine runs without a
remote inventory service (``allocsync serve --seed inventory.json``) and as
the store backend in the test suite.

Seed file format:
    {
        "individual_equipment": [
            {"id": "eq-1", "name": "Starlink 1", "status": "available"}
        ],
        "equipment_items": [
            {"id": "item-1", "type_id": "cable-100", "status": "available", "quantity": 4}
        ]
    }
"""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any

from allocsync.inventory.base import (
    STATUS_AVAILABLE,
    BulkEquipmentItem,
    IndividualEquipment,
    InventoryNotFoundError,
)

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = frozenset({"status", "job_id", "name", "quantity"})


class InMemoryInventoryStore:
    """Dictionary-backed implementation of InventoryStore."""

    def __init__(
        self,
        individual_equipment: list[IndividualEquipment] | None = None,
        equipment_items: list[BulkEquipmentItem] | None = None,
    ) -> None:
        self._individual: dict[str, IndividualEquipment] = {
            e.id: e for e in individual_equipment or []
        }
        self._bulk: dict[str, BulkEquipmentItem] = {
            i.id: i for i in equipment_items or []
        }
        self.refresh_count = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InMemoryInventoryStore:
        """Create a store from a seed dictionary."""
        return cls(
            individual_equipment=[
                IndividualEquipment.from_dict(e)
                for e in data.get("individual_equipment", [])
            ],
            equipment_items=[
                BulkEquipmentItem.from_dict(i) for i in data.get("equipment_items", [])
            ],
        )

    @classmethod
    def from_file(cls, path: Path) -> InMemoryInventoryStore:
        """Create a store from a JSON seed file."""
        store = cls.from_dict(json.loads(Path(path).read_text()))
        logger.info(
            "Loaded inventory seed %s (%d individual, %d bulk)",
            path,
            len(store._individual),
            len(store._bulk),
        )
        return store

    # === Direct access (seeding and inspection) ===

    def put_individual(self, equipment: IndividualEquipment) -> None:
        self._individual[equipment.id] = equipment

    def put_bulk(self, item: BulkEquipmentItem) -> None:
        self._bulk[item.id] = item

    # === InventoryStore ===

    async def find_individual_equipment(
        self, equipment_id: str
    ) -> IndividualEquipment | None:
        equipment = self._individual.get(equipment_id)
        return replace(equipment) if equipment else None

    async def find_bulk_equipment_item(
        self, equipment_id: str
    ) -> BulkEquipmentItem | None:
        item = self._bulk.get(equipment_id)
        return replace(item) if item else None

    async def list_individual_equipment(self) -> list[IndividualEquipment]:
        return [replace(e) for e in self._individual.values()]

    async def list_bulk_equipment_items(self) -> list[BulkEquipmentItem]:
        return [replace(i) for i in self._bulk.values()]

    async def available_quantity_by_type(self, type_id: str) -> int:
        return sum(
            item.quantity
            for item in self._bulk.values()
            if item.type_id == type_id and item.status == STATUS_AVAILABLE
        )

    async def update_individual_equipment(
        self, equipment_id: str, changes: dict[str, Any]
    ) -> None:
        equipment = self._individual.get(equipment_id)
        if equipment is None:
            raise InventoryNotFoundError(f"Equipment not found: {equipment_id}", 404)
        self._individual[equipment_id] = replace(equipment, **_filter(changes))

    async def update_bulk_equipment_item(
        self, equipment_id: str, changes: dict[str, Any]
    ) -> None:
        item = self._bulk.get(equipment_id)
        if item is None:
            raise InventoryNotFoundError(f"Equipment item not found: {equipment_id}", 404)
        self._bulk[equipment_id] = replace(item, **_filter(changes))

    async def refresh(self) -> None:
        self.refresh_count += 1


def _filter(changes: dict[str, Any]) -> dict[str, Any]:
    """Keep only fields the store records."""
    return {k: v for k, v in changes.items() if k in _UPDATABLE_FIELDS}
