"""Shared equipment state store.

This module provides:
- EquipmentStateStore: equipment id -> last-known status/job, with per-id
  subscriptions

Entries are created lazily on first update and are never deleted; release
resets an entry to available. Every update notifies the subscribers of that
id synchronously, before ``update`` returns. ``batch_update`` is a loop over
``update``: there is no multi-key transaction, so subscribers must tolerate
seeing the updates one at a time.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import TYPE_CHECKING, Any

from allocsync.engine.types import EquipmentStateEntry, EquipmentStatus, utcnow

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from allocsync.engine.types import StateCallback

logger = logging.getLogger(__name__)


class _Unset:
    """Marker for "field not given" (distinct from job_id=None, which clears)."""

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


class EquipmentStateStore:
    """In-memory projection of equipment status with subscribe/notify.

    Usage:
        store = EquipmentStateStore()
        unsubscribe = store.subscribe("eq-1", lambda entry: print(entry.status))
        store.update("eq-1", status=EquipmentStatus.ALLOCATED, job_id="job-1")
        unsubscribe()
    """

    def __init__(self) -> None:
        self._entries: dict[str, EquipmentStateEntry] = {}
        # equipment_id -> callbacks; removed once empty
        self._subscribers: dict[str, list[StateCallback]] = {}

    def get(self, equipment_id: str) -> EquipmentStateEntry | None:
        """Get a copy of the entry for an id, if one exists."""
        entry = self._entries.get(equipment_id)
        return replace(entry) if entry else None

    def __contains__(self, equipment_id: object) -> bool:
        return equipment_id in self._entries

    def snapshot(self) -> dict[str, EquipmentStateEntry]:
        """Get a copy of every entry."""
        return {k: replace(v) for k, v in self._entries.items()}

    def update(
        self,
        equipment_id: str,
        *,
        status: EquipmentStatus = UNSET,
        job_id: str | None = UNSET,
        last_updated: datetime | None = None,
    ) -> EquipmentStateEntry:
        """Merge changes into an entry and notify its subscribers.

        Args:
            equipment_id: Equipment id.
            status: New status (unchanged if not given).
            job_id: New job id; None clears it (unchanged if not given).
            last_updated: Timestamp to record (defaults to now).

        Returns:
            Copy of the updated entry.
        """
        current = self._entries.get(equipment_id) or EquipmentStateEntry(
            equipment_id=equipment_id
        )
        entry = replace(
            current,
            status=current.status if status is UNSET else EquipmentStatus(status),
            job_id=current.job_id if job_id is UNSET else job_id,
            last_updated=last_updated or utcnow(),
        )
        self._entries[equipment_id] = entry
        self._notify(entry)
        return replace(entry)

    def batch_update(self, updates: Iterable[tuple[str, dict[str, Any]]]) -> None:
        """Apply updates in order, each notifying independently.

        Args:
            updates: (equipment_id, changes) pairs; changes holds any of
                status, job_id, last_updated.
        """
        for equipment_id, changes in updates:
            self.update(equipment_id, **changes)

    def subscribe(
        self,
        equipment_id: str,
        callback: StateCallback,
    ) -> Callable[[], None]:
        """Register a callback for changes to one id.

        Args:
            equipment_id: Equipment id to watch.
            callback: Called with a copy of the entry after every change.

        Returns:
            Function removing the subscription; calling it twice is a no-op.
        """
        self._subscribers.setdefault(equipment_id, []).append(callback)
        subscribed = True

        def unsubscribe() -> None:
            nonlocal subscribed
            if not subscribed:
                return
            subscribed = False
            callbacks = self._subscribers.get(equipment_id)
            if callbacks is None:
                return
            if callback in callbacks:
                callbacks.remove(callback)
            if not callbacks:
                del self._subscribers[equipment_id]

        return unsubscribe

    def subscriber_count(self, equipment_id: str) -> int:
        """Number of active subscriptions for an id."""
        return len(self._subscribers.get(equipment_id, ()))

    def _notify(self, entry: EquipmentStateEntry) -> None:
        # Copy: a callback may unsubscribe while we iterate
        for callback in list(self._subscribers.get(entry.equipment_id, ())):
            try:
                callback(replace(entry))
            except Exception:
                logger.exception(
                    "Subscriber for %s raised while being notified", entry.equipment_id
                )
