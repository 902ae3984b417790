"""Core module - Shared configuration and enums."""

from allocsync.core.config import EngineConfig, InventoryConfig
from allocsync.core.types import ResolutionChoice, SyncState

__all__ = [
    # Config
    "EngineConfig",
    "InventoryConfig",
    # Types
    "ResolutionChoice",
    "SyncState",
]
