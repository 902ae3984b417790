"""HTTP client for a remote inventory store.

This module provides:
- HTTPInventoryStore: InventoryStore backed by the inventory REST API

Endpoints used:
    GET   /api/individual-equipment
    GET   /api/individual-equipment/{id}
    PATCH /api/individual-equipment/{id}
    GET   /api/equipment-items
    GET   /api/equipment-items/{id}
    PATCH /api/equipment-items/{id}
    GET   /api/equipment-types/{type_id}/available-quantity
    POST  /api/refresh
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from allocsync.core.config import InventoryConfig
from allocsync.inventory.base import (
    BulkEquipmentItem,
    IndividualEquipment,
    InventoryNotFoundError,
    InventoryStoreError,
)

logger = logging.getLogger(__name__)


def _detail(response: httpx.Response, default: str) -> str:
    try:
        return str(response.json().get("detail", default))
    except ValueError:
        return default


class HTTPInventoryStore:
    """Async HTTP client for the inventory store API."""

    def __init__(
        self,
        config: InventoryConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the store client.

        Args:
            config: Connection settings.
            transport: Optional transport override (used by tests).
        """
        self._config = config
        headers = {}
        if config.token:
            headers["Authorization"] = f"Bearer {config.token}"
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout,
            headers=headers,
            verify=config.verify_ssl,
            transport=transport,
        )

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> HTTPInventoryStore:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code == 404:
            raise InventoryNotFoundError(_detail(response, "Resource not found"), 404)
        if response.status_code >= 400:
            raise InventoryStoreError(
                _detail(response, "Unknown error"), response.status_code
            )
        return response

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise InventoryStoreError(f"Inventory store unreachable: {e}") from e
        return self._handle_response(response)

    # === Lookups ===

    async def find_individual_equipment(
        self, equipment_id: str
    ) -> IndividualEquipment | None:
        try:
            response = await self._request(
                "GET", f"/api/individual-equipment/{equipment_id}"
            )
        except InventoryNotFoundError:
            return None
        return IndividualEquipment.from_dict(response.json())

    async def find_bulk_equipment_item(
        self, equipment_id: str
    ) -> BulkEquipmentItem | None:
        try:
            response = await self._request("GET", f"/api/equipment-items/{equipment_id}")
        except InventoryNotFoundError:
            return None
        return BulkEquipmentItem.from_dict(response.json())

    async def list_individual_equipment(self) -> list[IndividualEquipment]:
        response = await self._request("GET", "/api/individual-equipment")
        return [IndividualEquipment.from_dict(e) for e in response.json()]

    async def list_bulk_equipment_items(self) -> list[BulkEquipmentItem]:
        response = await self._request("GET", "/api/equipment-items")
        return [BulkEquipmentItem.from_dict(i) for i in response.json()]

    async def available_quantity_by_type(self, type_id: str) -> int:
        response = await self._request(
            "GET", f"/api/equipment-types/{type_id}/available-quantity"
        )
        return int(response.json()["available"])

    # === Updates ===

    async def update_individual_equipment(
        self, equipment_id: str, changes: dict[str, Any]
    ) -> None:
        await self._request(
            "PATCH", f"/api/individual-equipment/{equipment_id}", json=changes
        )
        logger.debug("Updated individual equipment %s: %s", equipment_id, changes)

    async def update_bulk_equipment_item(
        self, equipment_id: str, changes: dict[str, Any]
    ) -> None:
        await self._request("PATCH", f"/api/equipment-items/{equipment_id}", json=changes)
        logger.debug("Updated equipment item %s: %s", equipment_id, changes)

    async def refresh(self) -> None:
        await self._request("POST", "/api/refresh")
