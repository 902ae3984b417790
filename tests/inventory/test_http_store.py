"""Tests for the HTTP inventory store client."""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from allocsync.core.config import InventoryConfig
from allocsync.inventory.base import InventoryNotFoundError, InventoryStoreError
from allocsync.inventory.http import HTTPInventoryStore


class FakeInventoryAPI:
    """Minimal inventory API served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.individual: dict[str, dict[str, Any]] = {
            "eq-1": {"id": "eq-1", "name": "Starlink 1", "status": "available", "job_id": None},
        }
        self.items: dict[str, dict[str, Any]] = {
            "item-1": {
                "id": "item-1",
                "type_id": "cable-100",
                "status": "available",
                "quantity": 4,
            },
        }
        self.requests: list[httpx.Request] = []
        self.fail_with: int | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, json={"detail": "store unavailable"})

        parts = request.url.path.strip("/").split("/")
        if parts[:2] == ["api", "refresh"]:
            return httpx.Response(204)
        if parts[:2] == ["api", "equipment-types"]:
            total = sum(
                i["quantity"]
                for i in self.items.values()
                if i["type_id"] == parts[2] and i["status"] == "available"
            )
            return httpx.Response(200, json={"available": total})

        collection = {
            "individual-equipment": self.individual,
            "equipment-items": self.items,
        }[parts[1]]
        if len(parts) == 2:
            return httpx.Response(200, json=list(collection.values()))

        record = collection.get(parts[2])
        if record is None:
            return httpx.Response(404, json={"detail": "not found"})
        if request.method == "PATCH":
            record.update(json.loads(request.content))
        return httpx.Response(200, json=record)


@pytest.fixture
def api() -> FakeInventoryAPI:
    """Create a fake inventory API."""
    return FakeInventoryAPI()


@pytest.fixture
def http_store(api: FakeInventoryAPI) -> HTTPInventoryStore:
    """Create a store client wired to the fake API."""
    config = InventoryConfig(base_url="http://inventory.test", token="secret")
    return HTTPInventoryStore(config, transport=httpx.MockTransport(api))


class TestLookups:
    """Tests for find/list calls."""

    @pytest.mark.asyncio
    async def test_find_individual(self, http_store: HTTPInventoryStore) -> None:
        """Should parse individual equipment."""
        equipment = await http_store.find_individual_equipment("eq-1")
        assert equipment is not None
        assert equipment.name == "Starlink 1"
        await http_store.aclose()

    @pytest.mark.asyncio
    async def test_find_missing_returns_none(self, http_store: HTTPInventoryStore) -> None:
        """A 404 should read as not found."""
        assert await http_store.find_individual_equipment("nope") is None
        assert await http_store.find_bulk_equipment_item("nope") is None
        await http_store.aclose()

    @pytest.mark.asyncio
    async def test_list_and_quantity(self, http_store: HTTPInventoryStore) -> None:
        """Should list records and read free quantity."""
        async with http_store:
            assert [e.id for e in await http_store.list_individual_equipment()] == ["eq-1"]
            items = await http_store.list_bulk_equipment_items()
            assert items[0].type_id == "cable-100"
            assert await http_store.available_quantity_by_type("cable-100") == 4

    @pytest.mark.asyncio
    async def test_sends_bearer_token(
        self, http_store: HTTPInventoryStore, api: FakeInventoryAPI
    ) -> None:
        """Should authenticate every request."""
        async with http_store:
            await http_store.find_individual_equipment("eq-1")
        assert api.requests[0].headers["Authorization"] == "Bearer secret"


class TestUpdates:
    """Tests for update calls and error mapping."""

    @pytest.mark.asyncio
    async def test_patch_individual(
        self, http_store: HTTPInventoryStore, api: FakeInventoryAPI
    ) -> None:
        """Should PATCH partial changes."""
        async with http_store:
            await http_store.update_individual_equipment(
                "eq-1", {"status": "deployed", "job_id": "job-1"}
            )
        assert api.individual["eq-1"]["status"] == "deployed"
        assert api.individual["eq-1"]["job_id"] == "job-1"
        assert api.requests[-1].method == "PATCH"

    @pytest.mark.asyncio
    async def test_patch_bulk(self, http_store: HTTPInventoryStore, api: FakeInventoryAPI) -> None:
        """Should PATCH bulk items through their own endpoint."""
        async with http_store:
            await http_store.update_bulk_equipment_item("item-1", {"status": "deployed"})
        assert api.requests[-1].url.path == "/api/equipment-items/item-1"
        assert api.items["item-1"]["status"] == "deployed"

    @pytest.mark.asyncio
    async def test_update_missing_raises(self, http_store: HTTPInventoryStore) -> None:
        """Updating an unknown id should raise not found."""
        async with http_store:
            with pytest.raises(InventoryNotFoundError):
                await http_store.update_individual_equipment("nope", {"status": "deployed"})

    @pytest.mark.asyncio
    async def test_server_error(self, http_store: HTTPInventoryStore, api: FakeInventoryAPI) -> None:
        """A 5xx should raise with status and detail."""
        api.fail_with = 503
        async with http_store:
            with pytest.raises(InventoryStoreError) as exc_info:
                await http_store.list_individual_equipment()
        assert exc_info.value.status_code == 503
        assert str(exc_info.value) == "store unavailable"

    @pytest.mark.asyncio
    async def test_connection_error(self) -> None:
        """Transport errors should become store errors."""

        def unreachable(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        store = HTTPInventoryStore(
            InventoryConfig(base_url="http://inventory.test"),
            transport=httpx.MockTransport(unreachable),
        )
        async with store:
            with pytest.raises(InventoryStoreError, match="unreachable"):
                await store.refresh()

    @pytest.mark.asyncio
    async def test_refresh(self, http_store: HTTPInventoryStore, api: FakeInventoryAPI) -> None:
        """Should POST a refresh request."""
        async with http_store:
            await http_store.refresh()
        assert api.requests[-1].method == "POST"
        assert api.requests[-1].url.path == "/api/refresh"
