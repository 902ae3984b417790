"""Tests for the allocation registry and its persisted cache."""

from __future__ import annotations

import time
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from allocsync.engine.persistence import AllocationCache
from allocsync.engine.registry import AllocationRegistry
from allocsync.engine.state_store import EquipmentStateStore
from allocsync.engine.types import AllocationRecord, EquipmentStatus


def make_record(
    equipment_id: str = "eq-1",
    job_id: str = "job-1",
    allocated_at: datetime | None = None,
) -> AllocationRecord:
    return AllocationRecord(
        equipment_id=equipment_id,
        job_id=job_id,
        job_name=f"Job {job_id}",
        allocated_at=allocated_at or datetime.now(UTC),
    )


class TestAllocationRecord:
    """Tests for AllocationRecord row conversion."""

    def test_row_round_trip(self) -> None:
        """Should restore a record from its row."""
        record = make_record(allocated_at=datetime(2024, 5, 1, 12, 0, tzinfo=UTC))
        assert AllocationRecord.from_row(record.to_row()) == record

    @pytest.mark.parametrize(
        "row",
        [
            ("eq-1", "job-1", "Job"),
            (None, "job-1", "Job", 1.0, "allocated"),
            ("eq-1", "", "Job", 1.0, "allocated"),
            ("eq-1", "job-1", "Job", None, "allocated"),
            ("eq-1", "job-1", "Job", "not-a-time", "allocated"),
            ("eq-1", "job-1", "Job", 1.0, "bogus"),
            ("eq-1", "job-1", "Job", 1.0, "available"),
        ],
    )
    def test_from_row_rejects_malformed(self, row: tuple) -> None:
        """Should reject rows the registry cannot trust."""
        with pytest.raises((ValueError, TypeError)):
            AllocationRecord.from_row(row)

    def test_is_expired(self) -> None:
        """Should expire at the retention boundary."""
        now = datetime(2024, 5, 2, tzinfo=UTC)
        record = make_record(allocated_at=now - timedelta(hours=24))
        assert record.is_expired(timedelta(hours=24), now)
        assert not record.is_expired(timedelta(hours=25), now)


class TestRegistryMutations:
    """Tests for set_allocation and remove_allocation."""

    def test_set_projects_into_state_store(self) -> None:
        """Should mirror the record into the state store."""
        state_store = EquipmentStateStore()
        registry = AllocationRegistry(state_store)

        registry.set_allocation(make_record())

        entry = state_store.get("eq-1")
        assert entry is not None
        assert entry.status == EquipmentStatus.ALLOCATED
        assert entry.job_id == "job-1"
        assert "eq-1" in registry
        assert len(registry) == 1

    def test_set_replaces_existing(self) -> None:
        """Should keep at most one record per id."""
        registry = AllocationRegistry(EquipmentStateStore())
        registry.set_allocation(make_record(job_id="job-1"))
        registry.set_allocation(make_record(job_id="job-2"))
        assert len(registry) == 1
        assert registry.get("eq-1").job_id == "job-2"  # type: ignore[union-attr]

    def test_remove_resets_projection(self) -> None:
        """Should set the entry back to available."""
        state_store = EquipmentStateStore()
        registry = AllocationRegistry(state_store)
        registry.set_allocation(make_record())

        removed = registry.remove_allocation("eq-1")

        assert removed is not None
        assert "eq-1" not in registry
        entry = state_store.get("eq-1")
        assert entry is not None
        assert entry.status == EquipmentStatus.AVAILABLE
        assert entry.job_id is None

    def test_remove_unknown(self) -> None:
        """Should still reset the projection for an unknown id."""
        state_store = EquipmentStateStore()
        registry = AllocationRegistry(state_store)
        assert registry.remove_allocation("eq-9") is None
        assert state_store.get("eq-9").status == EquipmentStatus.AVAILABLE  # type: ignore[union-attr]

    def test_for_job(self) -> None:
        """Should list records held by one job."""
        registry = AllocationRegistry(EquipmentStateStore())
        registry.set_allocation(make_record("eq-1", "job-1"))
        registry.set_allocation(make_record("eq-2", "job-2"))
        registry.set_allocation(make_record("eq-3", "job-1"))
        assert [r.equipment_id for r in registry.for_job("job-1")] == ["eq-1", "eq-3"]


class TestRegistryPersistence:
    """Tests for load and persist against the SQLite cache."""

    def test_persists_without_loop(self, cache: AllocationCache) -> None:
        """Should write inline outside an event loop."""
        registry = AllocationRegistry(EquipmentStateStore(), cache=cache)
        registry.set_allocation(make_record())
        rows = cache.load_rows()
        assert [r[0] for r in rows] == ["eq-1"]

    @pytest.mark.asyncio
    async def test_persists_in_background(self, cache: AllocationCache) -> None:
        """Should write the latest snapshot once flushed."""
        registry = AllocationRegistry(EquipmentStateStore(), cache=cache)
        registry.set_allocation(make_record("eq-1"))
        registry.set_allocation(make_record("eq-2"))
        registry.remove_allocation("eq-1")

        await registry.flush()

        assert [r[0] for r in cache.load_rows()] == ["eq-2"]

    def test_survives_restart(self, tmp_path: Path) -> None:
        """A new registry over the same file should see the records."""
        db_path = tmp_path / "cache.db"
        first = AllocationRegistry(EquipmentStateStore(), cache=AllocationCache(db_path))
        first.set_allocation(make_record("eq-1", "job-1"))

        state_store = EquipmentStateStore()
        second = AllocationRegistry(state_store, cache=AllocationCache(db_path))
        assert second.load() == 1
        assert second.get("eq-1").job_id == "job-1"  # type: ignore[union-attr]
        assert state_store.get("eq-1").status == EquipmentStatus.ALLOCATED  # type: ignore[union-attr]

    def test_load_drops_expired(self, cache: AllocationCache) -> None:
        """Should discard records older than the retention window."""
        now = datetime.now(UTC)
        cache.save(
            [
                make_record("eq-old", allocated_at=now - timedelta(hours=25)).to_row(),
                make_record("eq-new", allocated_at=now - timedelta(hours=1)).to_row(),
            ]
        )
        registry = AllocationRegistry(EquipmentStateStore(), cache=cache)

        assert registry.load(now=now) == 1
        assert "eq-old" not in registry
        # Expired rows are removed from disk too
        assert [r[0] for r in cache.load_rows()] == ["eq-new"]

    def test_load_custom_retention(self, cache: AllocationCache) -> None:
        """Should honor a configured retention window."""
        now = datetime.now(UTC)
        cache.save([make_record(allocated_at=now - timedelta(hours=3)).to_row()])
        registry = AllocationRegistry(
            EquipmentStateStore(), cache=cache, retention=timedelta(hours=2)
        )
        assert registry.load(now=now) == 0

    def test_load_skips_malformed_rows(self, cache: AllocationCache) -> None:
        """A damaged row should not abort the load."""
        cache.save(
            [
                ("eq-bad", "job-1", "Job", time.time(), "nonsense"),
                ("eq-none", "job-1", "Job", None, "allocated"),
                make_record("eq-good").to_row(),
            ]
        )
        registry = AllocationRegistry(EquipmentStateStore(), cache=cache)

        assert registry.load() == 1
        assert registry.get("eq-good") is not None
        assert [r[0] for r in cache.load_rows()] == ["eq-good"]

    def test_load_cache_failure_starts_empty(self) -> None:
        """An unreadable cache should leave the registry empty."""
        cache = MagicMock(spec=AllocationCache)
        cache.load_rows.side_effect = RuntimeError("disk gone")
        registry = AllocationRegistry(EquipmentStateStore(), cache=cache)
        assert registry.load() == 0
        assert len(registry) == 0

    def test_save_failure_is_logged(self) -> None:
        """A failed write should not propagate to the caller."""
        cache = MagicMock(spec=AllocationCache)
        cache.save.side_effect = RuntimeError("disk full")
        registry = AllocationRegistry(EquipmentStateStore(), cache=cache)

        registry.set_allocation(make_record())

        assert "eq-1" in registry
        cache.save.assert_called_once()


class TestAllocationCache:
    """Tests for the SQLite cache."""

    def test_save_replaces_snapshot(self, cache: AllocationCache) -> None:
        """Should keep only the last saved rows."""
        cache.save([make_record("eq-1").to_row(), make_record("eq-2").to_row()])
        cache.save([make_record("eq-3").to_row()])
        assert [r[0] for r in cache.load_rows()] == ["eq-3"]

    def test_purge_older_than(self, cache: AllocationCache) -> None:
        """Should delete old and timestamp-less rows."""
        now = time.time()
        cache.save(
            [
                ("eq-old", "job-1", "Job", now - 7200, "allocated"),
                ("eq-null", "job-1", "Job", None, "allocated"),
                ("eq-new", "job-1", "Job", now, "deployed"),
            ]
        )
        assert cache.purge_older_than(now - 3600) == 2
        assert [r[0] for r in cache.load_rows()] == ["eq-new"]
