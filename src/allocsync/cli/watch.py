"""Watch command for AllocSync CLI.

Commands:
- watch: Follow state changes of one piece of equipment over WebSocket
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any

import click
import websockets
from websockets.exceptions import WebSocketException

logger = logging.getLogger(__name__)


def ws_url(server_url: str, equipment_id: str) -> str:
    """Get the WebSocket URL for an equipment feed."""
    # Convert http(s) to ws(s)
    url = server_url.rstrip("/")
    if url.startswith("https://"):
        url = "wss://" + url[8:]
    elif url.startswith("http://"):
        url = "ws://" + url[7:]
    return f"{url}/ws/equipment/{equipment_id}"


def format_message(data: dict[str, Any]) -> str | None:
    """Render an equipment_state message as one line (None for other types)."""
    if data.get("type") != "equipment_state":
        return None
    line = f"[{data.get('last_updated', '?')}] {data.get('equipment_id')}: {data.get('status')}"
    if data.get("job_id"):
        line += f" (job {data['job_id']})"
    return line


async def _watch(url: str, count: int | None) -> int:
    """Print state messages until closed or count is reached.

    Returns:
        Number of state messages printed.
    """
    printed = 0
    async with websockets.connect(url, open_timeout=10, close_timeout=5) as ws:
        async for message in ws:
            if isinstance(message, bytes):
                message = message.decode("utf-8")
            try:
                data = json.loads(message)
            except json.JSONDecodeError:
                logger.warning("Invalid message received: %s", message[:100])
                continue
            line = format_message(data)
            if line is None:
                continue
            click.echo(line)
            printed += 1
            if count is not None and printed >= count:
                break
    return printed


@click.command()
@click.argument("equipment_id")
@click.option(
    "--server-url",
    default="http://127.0.0.1:8000",
    show_default=True,
    envvar="ALLOCSYNC_SERVER_URL",
    help="Allocation server URL.",
)
@click.option(
    "--count",
    "-n",
    type=int,
    default=None,
    help="Exit after N state changes.",
)
def watch(equipment_id: str, server_url: str, count: int | None) -> None:
    """Follow state changes of a piece of equipment.

    Prints the current state (if known) and every change after it, until
    interrupted.

    Examples:

        allocsync watch truck-7 --server-url http://alloc.internal:8000
    """
    url = ws_url(server_url, equipment_id)
    click.echo(f"Watching {equipment_id} ({url})", err=True)
    try:
        asyncio.run(_watch(url, count))
    except KeyboardInterrupt:
        pass
    except (OSError, WebSocketException) as e:
        click.echo(f"Error: Connection failed: {e}", err=True)
        sys.exit(1)
