"""Shared types for allocsync.

This module defines enums used by the engine, the service layer and the CLI.
"""

from __future__ import annotations

from enum import Enum


class SyncState(str, Enum):
    """State of the reconciliation loop.

    Reported by the coordinator and exposed through the sync status API.
    """

    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"


class ResolutionChoice(str, Enum):
    """Which side of a conflict keeps the equipment."""

    CURRENT = "current"  # Keep current holder, reject the request
    REQUESTED = "requested"  # Move equipment to the requesting job
