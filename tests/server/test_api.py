"""Tests for FastAPI server endpoints."""

from __future__ import annotations

from unittest.mock import AsyncMock

from fastapi.testclient import TestClient

from allocsync.engine.coordinator import SyncCoordinator
from allocsync.inventory.base import InventoryStoreError
from allocsync.inventory.memory import InMemoryInventoryStore


def deploy(store: InMemoryInventoryStore, equipment_id: str, job_id: str) -> None:
    equipment = store._individual[equipment_id]
    equipment.status = "deployed"
    equipment.job_id = job_id


class TestHealthEndpoint:
    """Tests for health check endpoint."""

    def test_health_check(self, client: TestClient) -> None:
        """Health endpoint should return OK."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestEquipmentEndpoints:
    """Tests for /api/equipment routes."""

    def test_status_from_store(self, client: TestClient) -> None:
        """Should report the store status for untouched equipment."""
        response = client.get("/api/equipment/eq-1/status")
        assert response.status_code == 200
        assert response.json() == {"equipment_id": "eq-1", "status": "available", "job_id": None}

    def test_status_unknown(self, client: TestClient) -> None:
        """Unknown equipment should read as unavailable."""
        response = client.get("/api/equipment/nope/status")
        assert response.json()["status"] == "unavailable"

    def test_validate_available(self, client: TestClient) -> None:
        """Should report free equipment as available."""
        response = client.post("/api/equipment/eq-1/validate", json={"job_id": "job-1"})
        assert response.status_code == 200
        data = response.json()
        assert data["available"] is True
        assert data["outcome"] == "available"
        assert data["conflict"] is None

    def test_validate_conflict(
        self, client: TestClient, store: InMemoryInventoryStore
    ) -> None:
        """Should return the recorded conflict."""
        deploy(store, "eq-2", "job-1")
        response = client.post(
            "/api/equipment/eq-2/validate", json={"job_id": "job-2", "job_name": "Job Two"}
        )
        data = response.json()
        assert data["available"] is False
        assert data["outcome"] == "conflicted"
        assert data["conflict"]["current_job_id"] == "job-1"
        assert data["conflict"]["requested_job_name"] == "Job Two"

    def test_validate_rejects_bad_quantity(self, client: TestClient) -> None:
        """Quantity must be positive."""
        response = client.post(
            "/api/equipment/item-1/validate", json={"job_id": "job-1", "quantity": 0}
        )
        assert response.status_code == 422

    def test_allocate(self, client: TestClient) -> None:
        """Should allocate and show the new status immediately."""
        response = client.post(
            "/api/equipment/eq-1/allocate", json={"job_id": "job-2", "job_name": "Job Two"}
        )
        assert response.status_code == 201
        assert response.json()["job_id"] == "job-2"

        status = client.get("/api/equipment/eq-1/status").json()
        assert status["status"] == "allocated"
        assert status["job_id"] == "job-2"

    def test_allocate_unavailable(self, client: TestClient) -> None:
        """Should return 409 with the validation reason."""
        response = client.post(
            "/api/equipment/eq-maint/allocate", json={"job_id": "job-1", "job_name": "Job One"}
        )
        assert response.status_code == 409
        assert response.json()["detail"] == "Generator 3 not available (Status: maintenance)"

    def test_allocate_store_failure(
        self, client: TestClient, store: InMemoryInventoryStore
    ) -> None:
        """Should return 502 when the store write fails."""
        store.update_individual_equipment = AsyncMock(  # type: ignore[method-assign]
            side_effect=InventoryStoreError("down", 503)
        )
        response = client.post(
            "/api/equipment/eq-1/allocate", json={"job_id": "job-1", "job_name": "Job One"}
        )
        assert response.status_code == 502

    def test_release(self, client: TestClient) -> None:
        """Should release and be idempotent."""
        client.post("/api/equipment/eq-1/allocate", json={"job_id": "job-1", "job_name": "J"})

        assert client.post("/api/equipment/eq-1/release", json={"job_id": "job-1"}).status_code == 204
        assert client.post("/api/equipment/eq-1/release", json={"job_id": "job-1"}).status_code == 204
        assert client.get("/api/equipment/eq-1/status").json()["status"] == "available"

    def test_release_wrong_job(self, client: TestClient) -> None:
        """Should refuse to release another job's equipment."""
        client.post("/api/equipment/eq-1/allocate", json={"job_id": "job-1", "job_name": "J"})
        response = client.post("/api/equipment/eq-1/release", json={"job_id": "job-2"})
        assert response.status_code == 409


class TestJobEndpoints:
    """Tests for /api/jobs routes."""

    def test_batch_then_list(self, client: TestClient) -> None:
        """Batch assignment should report per-item results."""
        response = client.post(
            "/api/jobs/job-1/equipment",
            json={"job_name": "Job One", "equipment_ids": ["eq-1", "eq-maint"]},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["succeeded"] == ["eq-1"]
        assert list(data["failed"]) == ["eq-maint"]

        listed = client.get("/api/jobs/job-1/equipment").json()
        assert listed == {"job_id": "job-1", "equipment_ids": ["eq-1"]}

    def test_allocations_listing(self, client: TestClient) -> None:
        """Should list active allocations, optionally per job."""
        client.post("/api/equipment/eq-1/allocate", json={"job_id": "job-1", "job_name": "A"})
        client.post("/api/equipment/eq-2/allocate", json={"job_id": "job-2", "job_name": "B"})

        assert len(client.get("/api/allocations").json()) == 2
        only = client.get("/api/allocations", params={"job_id": "job-2"}).json()
        assert [a["equipment_id"] for a in only] == ["eq-2"]


class TestConflictEndpoints:
    """Tests for /api/conflicts routes."""

    def test_resolve_requested(
        self, client: TestClient, store: InMemoryInventoryStore
    ) -> None:
        """Resolving should move the equipment and clear the conflict."""
        deploy(store, "eq-2", "job-1")
        client.post("/api/equipment/eq-2/validate", json={"job_id": "job-2"})
        assert len(client.get("/api/conflicts").json()) == 1

        response = client.post("/api/conflicts/eq-2/resolve", json={"choice": "requested"})

        assert response.status_code == 204
        assert client.get("/api/conflicts").json() == []
        assert "eq-2" in client.get("/api/jobs/job-2/equipment").json()["equipment_ids"]

    def test_resolve_without_conflict(self, client: TestClient) -> None:
        """Should return 404 when no conflict is open."""
        response = client.post("/api/conflicts/eq-1/resolve", json={"choice": "current"})
        assert response.status_code == 404

    def test_resolve_invalid_choice(self, client: TestClient) -> None:
        """Should reject unknown choices."""
        response = client.post("/api/conflicts/eq-1/resolve", json={"choice": "both"})
        assert response.status_code == 422

    def test_clear(self, client: TestClient, store: InMemoryInventoryStore) -> None:
        """Should drop every conflict."""
        deploy(store, "eq-2", "job-1")
        client.post("/api/equipment/eq-2/validate", json={"job_id": "job-2"})
        assert client.delete("/api/conflicts").json() == {"cleared": 1}
        assert client.get("/api/conflicts").json() == []


class TestSyncEndpoints:
    """Tests for /api/sync and /api/inventory routes."""

    def test_sync_status_before_sync(self, client: TestClient) -> None:
        """Should report idle with no previous pass."""
        data = client.get("/api/sync/status").json()
        assert data["state"] == "idle"
        assert data["last_sync_at"] is None

    def test_run_sync(self, client: TestClient, store: InMemoryInventoryStore) -> None:
        """Should repair drift and report it."""
        deploy(store, "eq-2", "job-1")

        data = client.post("/api/sync").json()

        assert data["success"] is True
        assert data["released"] == ["eq-2"]
        status = client.get("/api/sync/status").json()
        assert status["last_sync_at"] == data["finished_at"]

    def test_inventory_changes(
        self, client: TestClient, app_coordinator: SyncCoordinator
    ) -> None:
        """Pushed changes should update allocations in order."""
        response = client.post(
            "/api/inventory/changes",
            json=[
                {"equipment_id": "eq-1", "status": "deployed", "job_id": "job-1", "job_name": "A"},
                {"equipment_id": "eq-2", "status": "deployed", "job_id": "job-1"},
                {"equipment_id": "eq-2", "status": "available"},
            ],
        )
        assert response.status_code == 204
        assert [r.equipment_id for r in app_coordinator.registry.records()] == ["eq-1"]
