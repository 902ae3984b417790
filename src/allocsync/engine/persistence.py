"""Persisted allocation cache using SQLAlchemy with SQLite.

This module provides:
- AllocationRow: ORM model of one cached allocation
- AllocationCache: Load/save of the allocation snapshot

The cache stores plain rows ``(equipment_id, job_id, job_name, allocated_at,
status)``. Columns are deliberately loose (nullable, untyped status) so that
a damaged row is read back as-is and discarded by the registry instead of
failing the whole load.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import Float, String, Text, create_engine, delete, select
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

CacheRow = tuple[Any, Any, Any, Any, Any]


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""


class AllocationRow(Base):
    """Cached allocation, keyed by equipment id."""

    __tablename__ = "allocations"

    equipment_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    job_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    job_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    allocated_at: Mapped[float | None] = mapped_column(Float, nullable=True)
    status: Mapped[str | None] = mapped_column(String(32), nullable=True)

    def as_tuple(self) -> CacheRow:
        return (
            self.equipment_id,
            self.job_id,
            self.job_name,
            self.allocated_at,
            self.status,
        )


class AllocationCache:
    """SQLite-backed snapshot of the allocation registry.

    Uses WAL mode so a CLI reader can inspect the cache while the server
    writes it.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the cache database.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        # Writes run in a worker thread (see AllocationRegistry.persist)
        self._engine: Engine = create_engine(
            f"sqlite:///{self._db_path}",
            connect_args={"check_same_thread": False},
            echo=False,
        )

        with self._engine.connect() as conn:
            conn.exec_driver_sql("PRAGMA journal_mode=WAL")

        Base.metadata.create_all(self._engine)

    @property
    def path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        """Close the database connection."""
        self._engine.dispose()

    def _session(self) -> Session:
        """Create a new database session."""
        return Session(self._engine)

    def load_rows(self) -> list[CacheRow]:
        """Read every cached row, unvalidated.

        Returns:
            List of raw row tuples.
        """
        with self._session() as session:
            rows = session.execute(
                select(AllocationRow).order_by(AllocationRow.equipment_id)
            ).scalars()
            return [row.as_tuple() for row in rows]

    def save(self, rows: Iterable[CacheRow]) -> int:
        """Replace the cached snapshot in one transaction.

        Args:
            rows: Complete set of rows to keep.

        Returns:
            Number of rows written.
        """
        count = 0
        with self._session() as session:
            session.execute(delete(AllocationRow))
            for equipment_id, job_id, job_name, allocated_at, status in rows:
                session.add(
                    AllocationRow(
                        equipment_id=equipment_id,
                        job_id=job_id,
                        job_name=job_name,
                        allocated_at=allocated_at,
                        status=status,
                    )
                )
                count += 1
            session.commit()
        return count

    def purge_older_than(self, cutoff: float) -> int:
        """Delete rows allocated before a timestamp.

        Rows without a timestamp are deleted too.

        Args:
            cutoff: POSIX timestamp.

        Returns:
            Number of rows deleted.
        """
        with self._session() as session:
            result = session.execute(
                delete(AllocationRow).where(
                    (AllocationRow.allocated_at < cutoff)
                    | (AllocationRow.allocated_at.is_(None))
                )
            )
            session.commit()
            deleted = result.rowcount or 0
        if deleted:
            logger.info("Purged %d expired allocation rows from %s", deleted, self._db_path)
        return deleted
