"""Options shared by CLI commands."""

from __future__ import annotations

import os
from pathlib import Path

import click

from allocsync.core.config import DEFAULT_DB_PATH, InventoryConfig
from allocsync.inventory.base import InventoryStore
from allocsync.server.app import build_store

db_path_option = click.option(
    "--db-path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to allocation cache (default: ALLOCSYNC_DB_PATH or ./allocsync.db).",
)

inventory_url_option = click.option(
    "--inventory-url",
    default=None,
    help="Inventory store URL (default: ALLOCSYNC_INVENTORY_URL; in-memory if unset).",
)

seed_option = click.option(
    "--seed",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="JSON file seeding the in-memory inventory store.",
)


def resolve_db_path(db_path: Path | None) -> Path:
    """Resolve the cache path from the option or environment."""
    return db_path or Path(os.environ.get("ALLOCSYNC_DB_PATH", DEFAULT_DB_PATH))


def store_from_options(inventory_url: str | None, seed: Path | None) -> InventoryStore:
    """Create the inventory store selected by CLI options."""
    if inventory_url:
        inventory = InventoryConfig(
            base_url=inventory_url,
            token=os.environ.get("ALLOCSYNC_INVENTORY_TOKEN"),
        )
    else:
        inventory = InventoryConfig.from_env()
    return build_store(inventory, seed)
