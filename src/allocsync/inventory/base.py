"""Inventory store interface and record types.

This module provides:
- IndividualEquipment, BulkEquipmentItem: Records as the store reports them
- InventoryStore: Protocol every store backend implements
- InventoryStoreError, InventoryNotFoundError: Store-side exceptions

The store is the system of record for equipment status and quantity. The
engine only reads it through the lookups below and writes it through the two
update calls; everything else about the store is owned elsewhere.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

# Store statuses the engine understands as holding or free.
STATUS_AVAILABLE = "available"
STATUS_ALLOCATED = "allocated"
STATUS_DEPLOYED = "deployed"

HELD_STATUSES = frozenset({STATUS_ALLOCATED, STATUS_DEPLOYED})
ASSIGNABLE_STATUSES = frozenset({STATUS_AVAILABLE}) | HELD_STATUSES


class InventoryStoreError(Exception):
    """Base exception for inventory store errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InventoryNotFoundError(InventoryStoreError):
    """Equipment not found in the store."""


@dataclass
class IndividualEquipment:
    """Individually tracked equipment (one serial, one record)."""

    id: str
    name: str
    status: str
    job_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IndividualEquipment:
        """Create from API response dictionary."""
        return cls(
            id=data["id"],
            name=data.get("name") or data["id"],
            status=data["status"],
            job_id=data.get("job_id"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "job_id": self.job_id,
        }


@dataclass
class BulkEquipmentItem:
    """Equipment counted in bulk by type."""

    id: str
    type_id: str
    status: str
    job_id: str | None = None
    quantity: int = 1
    name: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BulkEquipmentItem:
        """Create from API response dictionary."""
        return cls(
            id=data["id"],
            type_id=data["type_id"],
            status=data["status"],
            job_id=data.get("job_id"),
            quantity=int(data.get("quantity", 1)),
            name=data.get("name"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type_id": self.type_id,
            "status": self.status,
            "job_id": self.job_id,
            "quantity": self.quantity,
            "name": self.name,
        }


class InventoryStore(Protocol):
    """Protocol for the external inventory store.

    All calls may suspend on network I/O. Update calls raise on failure;
    lookups return None for unknown ids.
    """

    async def find_individual_equipment(
        self, equipment_id: str
    ) -> IndividualEquipment | None:
        """Look up individually tracked equipment."""
        ...

    async def find_bulk_equipment_item(
        self, equipment_id: str
    ) -> BulkEquipmentItem | None:
        """Look up a bulk equipment item."""
        ...

    async def list_individual_equipment(self) -> list[IndividualEquipment]:
        """List all individually tracked equipment."""
        ...

    async def list_bulk_equipment_items(self) -> list[BulkEquipmentItem]:
        """List all bulk equipment items."""
        ...

    async def available_quantity_by_type(self, type_id: str) -> int:
        """Get the quantity of a bulk type that is free to assign."""
        ...

    async def update_individual_equipment(
        self, equipment_id: str, changes: dict[str, Any]
    ) -> None:
        """Apply a partial update to individually tracked equipment."""
        ...

    async def update_bulk_equipment_item(
        self, equipment_id: str, changes: dict[str, Any]
    ) -> None:
        """Apply a partial update to a bulk equipment item."""
        ...

    async def refresh(self) -> None:
        """Ask the store to re-pull its data."""
        ...
