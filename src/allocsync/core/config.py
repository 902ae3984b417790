"""Shared configuration classes for allocsync.

This module defines configuration classes used by the engine, the server and
the CLI. Both classes can be built from ``ALLOCSYNC_*`` environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

DEFAULT_DB_PATH = "allocsync.db"
DEFAULT_RETENTION_HOURS = 24.0
DEFAULT_SYNC_INTERVAL = 30.0  # seconds
DEFAULT_REFRESH_DELAY = 1.0  # seconds


@dataclass
class EngineConfig:
    """Configuration for the allocation engine.

    Attributes:
        db_path: SQLite file holding the persisted allocation cache.
        retention_hours: Persisted allocations older than this are dropped on load.
        sync_interval: Seconds between reconciliation passes.
        refresh_delay: Debounce delay before asking the store to refresh.
        sync_on_startup: Run one reconciliation pass when the engine starts.
    """

    db_path: Path = Path(DEFAULT_DB_PATH)
    retention_hours: float = DEFAULT_RETENTION_HOURS
    sync_interval: float = DEFAULT_SYNC_INTERVAL
    refresh_delay: float = DEFAULT_REFRESH_DELAY
    sync_on_startup: bool = True

    def __post_init__(self) -> None:
        """Normalize and validate values."""
        self.db_path = Path(self.db_path)
        if self.retention_hours <= 0:
            raise ValueError("retention_hours must be positive")
        if self.sync_interval <= 0:
            raise ValueError("sync_interval must be positive")
        if self.refresh_delay < 0:
            raise ValueError("refresh_delay cannot be negative")

    @property
    def retention(self) -> timedelta:
        """Get the allocation retention window."""
        return timedelta(hours=self.retention_hours)

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Build configuration from environment variables with defaults."""
        return cls(
            db_path=Path(os.environ.get("ALLOCSYNC_DB_PATH", DEFAULT_DB_PATH)),
            retention_hours=float(
                os.environ.get("ALLOCSYNC_RETENTION_HOURS", DEFAULT_RETENTION_HOURS)
            ),
            sync_interval=float(
                os.environ.get("ALLOCSYNC_SYNC_INTERVAL", DEFAULT_SYNC_INTERVAL)
            ),
            refresh_delay=float(
                os.environ.get("ALLOCSYNC_REFRESH_DELAY", DEFAULT_REFRESH_DELAY)
            ),
        )


@dataclass
class InventoryConfig:
    """Configuration for connecting to the external inventory store.

    Attributes:
        base_url: Base URL of the inventory API (e.g., "https://inventory.example.com").
        token: Optional bearer token.
        timeout: Request timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    base_url: str
    token: str | None = None
    timeout: float = 30.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize base URL."""
        self.base_url = self.base_url.rstrip("/")

    @property
    def is_secure(self) -> bool:
        """Check if using HTTPS.

        Returns:
            True if the store is reached over HTTPS.
        """
        return self.base_url.startswith("https://")

    @classmethod
    def from_env(cls) -> InventoryConfig | None:
        """Build configuration from environment variables.

        Returns:
            InventoryConfig, or None when ALLOCSYNC_INVENTORY_URL is not set.
        """
        base_url = os.environ.get("ALLOCSYNC_INVENTORY_URL")
        if not base_url:
            return None
        return cls(
            base_url=base_url,
            token=os.environ.get("ALLOCSYNC_INVENTORY_TOKEN"),
            timeout=float(os.environ.get("ALLOCSYNC_INVENTORY_TIMEOUT", "30")),
        )
