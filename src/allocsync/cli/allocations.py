"""Allocation cache commands for AllocSync CLI.

Commands:
- allocations list: Show the persisted allocation cache
- allocations purge: Delete expired rows from the cache
"""

from __future__ import annotations

import sys
import time
from datetime import UTC, datetime
from pathlib import Path

import click

from allocsync.cli.options import db_path_option, resolve_db_path
from allocsync.core.config import DEFAULT_RETENTION_HOURS
from allocsync.engine.persistence import AllocationCache


def _open_cache(db_path: Path | None) -> AllocationCache:
    db_file = resolve_db_path(db_path)
    if not db_file.exists():
        click.echo(f"Error: Allocation cache not found: {db_file}", err=True)
        click.echo("Make sure the server has been run at least once.", err=True)
        sys.exit(1)
    return AllocationCache(db_file)


def _format_time(timestamp: float | None) -> str:
    if timestamp is None:
        return "-"
    try:
        return datetime.fromtimestamp(timestamp, UTC).strftime("%Y-%m-%d %H:%M:%S")
    except (OverflowError, OSError, ValueError):
        return "invalid"


@click.group()
def allocations() -> None:
    """Inspect and maintain the persisted allocation cache."""


@allocations.command("list")
@db_path_option
def list_cmd(db_path: Path | None) -> None:
    """List cached allocations, as persisted on disk."""
    cache = _open_cache(db_path)
    try:
        rows = cache.load_rows()
    finally:
        cache.close()

    if not rows:
        click.echo("No allocations.")
        return

    click.echo(f"{'EQUIPMENT':<20} {'JOB':<20} {'STATUS':<10} ALLOCATED (UTC)")
    for equipment_id, job_id, job_name, allocated_at, status in rows:
        job = f"{job_id} ({job_name})" if job_name and job_name != job_id else str(job_id)
        click.echo(
            f"{equipment_id:<20} {job:<20} {status or '-':<10} {_format_time(allocated_at)}"
        )
    click.echo(f"\n{len(rows)} allocations")


@allocations.command("purge")
@db_path_option
@click.option(
    "--older-than-hours",
    type=float,
    default=None,
    help=f"Delete rows older than N hours (default: {DEFAULT_RETENTION_HOURS:g}).",
)
def purge_cmd(db_path: Path | None, older_than_hours: float | None) -> None:
    """Delete expired allocations from the cache.

    The server drops expired allocations on startup anyway; this command
    cleans the cache while the server is down, and can be run from cron.

    Examples:

        # Purge using the default retention (24 hours)
        allocsync allocations purge

        # Purge rows older than 2 hours
        allocsync allocations purge --older-than-hours 2
    """
    hours = older_than_hours if older_than_hours is not None else DEFAULT_RETENTION_HOURS
    if hours <= 0:
        raise click.BadParameter("must be positive", param_hint="--older-than-hours")

    cache = _open_cache(db_path)
    try:
        deleted = cache.purge_older_than(time.time() - hours * 3600)
    finally:
        cache.close()

    if deleted > 0:
        click.echo(f"Purged {deleted} allocations.")
    else:
        click.echo("No allocations to purge.")
