"""Inventory store access: protocol, backends, and the unified lookup."""

from allocsync.inventory.base import (
    BulkEquipmentItem,
    IndividualEquipment,
    InventoryNotFoundError,
    InventoryStore,
    InventoryStoreError,
)
from allocsync.inventory.http import HTTPInventoryStore
from allocsync.inventory.lookup import (
    BulkRef,
    EquipmentRef,
    IndividualRef,
    InventoryItem,
    list_inventory,
    resolve_equipment,
    write_equipment,
)
from allocsync.inventory.memory import InMemoryInventoryStore

__all__ = [
    # base
    "BulkEquipmentItem",
    "IndividualEquipment",
    "InventoryNotFoundError",
    "InventoryStore",
    "InventoryStoreError",
    # backends
    "HTTPInventoryStore",
    "InMemoryInventoryStore",
    # lookup
    "BulkRef",
    "EquipmentRef",
    "IndividualRef",
    "InventoryItem",
    "list_inventory",
    "resolve_equipment",
    "write_equipment",
]
