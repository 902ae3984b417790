"""WebSocket hub for real-time equipment state.

This module provides:
- EquipmentHub: Bridges state store subscriptions to WebSocket connections
- The /ws/equipment/{equipment_id} endpoint

Architecture:
    EquipmentStateStore ──callback──► queue (per connection) ──ws──► client

State store callbacks are synchronous; each connection gets its own queue
so a slow client never blocks the notifying mutation.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from allocsync.server.schemas import state_to_message

if TYPE_CHECKING:
    from collections.abc import Callable

    from allocsync.engine.state_store import EquipmentStateStore
    from allocsync.engine.types import EquipmentStateEntry

logger = logging.getLogger(__name__)


class EquipmentHub:
    """Tracks WebSocket watchers of equipment state."""

    def __init__(self, state_store: EquipmentStateStore) -> None:
        self._state_store = state_store
        self._connections: dict[str, set[WebSocket]] = {}

    def connection_count(self, equipment_id: str | None = None) -> int:
        """Count open connections, for one id or overall."""
        if equipment_id is not None:
            return len(self._connections.get(equipment_id, ()))
        return sum(len(c) for c in self._connections.values())

    async def connect(
        self,
        websocket: WebSocket,
        equipment_id: str,
    ) -> tuple[asyncio.Queue[EquipmentStateEntry], Callable[[], None]]:
        """Accept a connection and subscribe it to an id.

        Returns:
            Tuple of (queue of state changes, unsubscribe function).
        """
        await websocket.accept()
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[EquipmentStateEntry] = asyncio.Queue()

        def on_change(entry: EquipmentStateEntry) -> None:
            loop.call_soon_threadsafe(queue.put_nowait, entry)

        unsubscribe = self._state_store.subscribe(equipment_id, on_change)
        self._connections.setdefault(equipment_id, set()).add(websocket)
        logger.info("Watcher connected: %s", equipment_id)

        # Current state first, if the id is known
        current = self._state_store.get(equipment_id)
        if current is not None:
            queue.put_nowait(current)
        return queue, unsubscribe

    def disconnect(
        self,
        websocket: WebSocket,
        equipment_id: str,
        unsubscribe: Callable[[], None],
    ) -> None:
        """Drop a connection and its subscription."""
        unsubscribe()
        watchers = self._connections.get(equipment_id)
        if watchers is not None:
            watchers.discard(websocket)
            if not watchers:
                del self._connections[equipment_id]
        logger.info("Watcher disconnected: %s", equipment_id)

    async def stream(
        self,
        websocket: WebSocket,
        queue: asyncio.Queue[EquipmentStateEntry],
    ) -> None:
        """Forward queued state changes until cancelled."""
        while True:
            entry = await queue.get()
            await websocket.send_text(state_to_message(entry).model_dump_json())


# WebSocket router
router = APIRouter(tags=["websocket"])


@router.websocket("/ws/equipment/{equipment_id}")
async def websocket_equipment(websocket: WebSocket, equipment_id: str) -> None:
    """WebSocket endpoint following one piece of equipment.

    Message format (server -> client):
        {"type": "equipment_state", "equipment_id": "...", "status": "deployed",
         "job_id": "...", "last_updated": "..."}

    The client does not send messages; anything it sends is ignored.

    Args:
        websocket: The WebSocket connection.
        equipment_id: Equipment to follow.
    """
    hub: EquipmentHub = websocket.app.state.hub
    queue, unsubscribe = await hub.connect(websocket, equipment_id)
    sender = asyncio.create_task(hub.stream(websocket, queue))

    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("Error in equipment WebSocket for %s", equipment_id)
    finally:
        hub.disconnect(websocket, equipment_id, unsubscribe)
        sender.cancel()
        with contextlib.suppress(asyncio.CancelledError, Exception):
            await sender
