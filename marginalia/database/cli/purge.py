#!/usr/bin/env python3
"""
purge.py
--------
Hard-delete sweep command.

Physically removes soft-deleted aggregates older than the retention
window and clears the content of old referenced sources.

Usage:
    # Show what would be removed
    marginalia-db purge --dry-run

    # Purge with a custom retention window
    marginalia-db purge --retention-hours 1
"""
# --- Annotations ---
from __future__ import annotations

# --- Third-party imports ---
import click

# --- Local imports ---
from marginalia.core.exceptions import DatabaseError
from marginalia.core.logging_manager import handle_cli_error
from . import get_db


@click.command()
@click.option("--dry-run", is_flag=True, help="Count candidates without deleting")
@click.option(
    "--retention-hours",
    type=click.FloatRange(min=0),
    default=None,
    help="Override the configured retention window",
)
@click.pass_context
def purge(ctx: click.Context, dry_run: bool, retention_hours: float | None) -> None:
    """Physically remove soft-deleted rows past the retention window."""
    try:
        db = get_db(ctx)
        report = db.purge(dry_run=dry_run, retention_hours=retention_hours)

        title = "🔍 Purge candidates" if dry_run else "🗑️  Purge complete"
        click.echo(f"\n{title} (cutoff {report.cutoff.isoformat()})")
        counts = report.summary()
        if not any(counts.values()):
            click.echo("  Nothing to purge")
        for name, count in counts.items():
            if count:
                click.echo(f"  • {name}: {count}")

        for failure in report.failures:
            click.echo(f"  ⚠️  {failure.kind} {failure.entity_id}: {failure.message}", err=True)
        report.raise_for_failures()

    except DatabaseError as e:
        handle_cli_error(ctx, e, "purge")
