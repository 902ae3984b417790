"""Server commands for AllocSync CLI.

Commands:
- serve: Run the allocation server
- sync: Run one reconciliation pass and print the report
"""

from __future__ import annotations

import asyncio
import sys
from dataclasses import replace
from pathlib import Path

import click

from allocsync.cli.options import (
    db_path_option,
    inventory_url_option,
    resolve_db_path,
    seed_option,
    store_from_options,
)
from allocsync.core.config import EngineConfig
from allocsync.engine.types import SyncReport
from allocsync.inventory.http import HTTPInventoryStore


@click.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address.")
@click.option("--port", type=int, default=8000, show_default=True, help="Bind port.")
@db_path_option
@inventory_url_option
@seed_option
@click.option(
    "--log-path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Log file (default: ALLOCSYNC_LOG_PATH or ./allocsync-server.log).",
)
def serve(
    host: str,
    port: int,
    db_path: Path | None,
    inventory_url: str | None,
    seed: Path | None,
    log_path: Path | None,
) -> None:
    """Run the allocation server.

    Without --inventory-url (or ALLOCSYNC_INVENTORY_URL) the server uses an
    in-memory inventory, optionally seeded from --seed.

    Examples:

        # Local server with demo inventory
        allocsync serve --seed inventory.json

        # Against a remote inventory store
        allocsync serve --inventory-url https://inventory.example.com
    """
    import uvicorn

    from allocsync.engine.coordinator import build_coordinator
    from allocsync.engine.scheduler import ReconciliationScheduler
    from allocsync.server.app import LOG_PATH, create_app, setup_logging

    setup_logging(log_path or LOG_PATH)

    config = replace(EngineConfig.from_env(), db_path=resolve_db_path(db_path))
    coordinator = build_coordinator(store_from_options(inventory_url, seed), config)
    scheduler = ReconciliationScheduler(
        coordinator,
        interval=config.sync_interval,
        run_on_start=config.sync_on_startup,
    )

    click.echo(f"Cache: {config.db_path}")
    click.echo(f"Listening on http://{host}:{port}")
    uvicorn.run(create_app(coordinator, scheduler), host=host, port=port)


def print_report(report: SyncReport) -> None:
    """Print a reconciliation report."""
    click.echo(f"Pushed:   {len(report.pushed)}")
    for equipment_id in report.pushed:
        click.echo(f"  + {equipment_id}")
    click.echo(f"Released: {len(report.released)}")
    for equipment_id in report.released:
        click.echo(f"  - {equipment_id}")
    if report.failures:
        click.echo(f"Failed:   {len(report.failures)}", err=True)
        for failure in report.failures:
            click.echo(f"  ! {failure.equipment_id}: {failure.error}", err=True)


@click.command()
@db_path_option
@inventory_url_option
@seed_option
def sync(
    db_path: Path | None,
    inventory_url: str | None,
    seed: Path | None,
) -> None:
    """Run one reconciliation pass against the inventory store.

    Loads the persisted allocations, pushes them to the store, frees items
    the store holds without an allocation, and prints what changed.
    Exits with status 1 if any store write failed.
    """
    from allocsync.engine.coordinator import build_coordinator

    config = replace(
        EngineConfig.from_env(),
        db_path=resolve_db_path(db_path),
        refresh_delay=0,
    )
    coordinator = build_coordinator(store_from_options(inventory_url, seed), config)

    async def run() -> SyncReport:
        loaded = await coordinator.start()
        click.echo(f"Loaded {loaded} allocations from {config.db_path}")
        try:
            return await coordinator.sync_inventory_status()
        finally:
            await coordinator.stop()
            if isinstance(coordinator.store, HTTPInventoryStore):
                await coordinator.store.aclose()

    report = asyncio.run(run())
    print_report(report)
    if not report.success:
        sys.exit(1)
