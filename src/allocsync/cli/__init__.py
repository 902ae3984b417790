"""Command-line interface for AllocSync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- serve: Run the allocation server
- sync: Run one reconciliation pass
- allocations list: Show the persisted allocation cache
- allocations purge: Delete expired rows from the cache
- watch: Follow state changes of one piece of equipment
"""

from __future__ import annotations

import click

from allocsync.cli.allocations import allocations
from allocsync.cli.server import serve, sync
from allocsync.cli.watch import watch


@click.group()
@click.version_option(package_name="allocsync")
def cli() -> None:
    """AllocSync - Equipment allocation conflict engine."""


# Server commands
cli.add_command(serve)
cli.add_command(sync)

# Cache commands
cli.add_command(allocations)

# Client commands
cli.add_command(watch)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "main",
]
