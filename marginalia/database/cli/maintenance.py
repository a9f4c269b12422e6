"""
Statistics Commands
-------------------

Commands:
    - stats: Display row counts per table
"""
import json

import click
from sqlalchemy.exc import SQLAlchemyError

from marginalia.core.exceptions import DatabaseError
from marginalia.core.logging_manager import handle_cli_error
from . import get_db


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def stats(ctx, as_json):
    """Display row counts, including soft-deleted rows awaiting purge."""
    try:
        db = get_db(ctx)
        counts = db.table_counts()
    except (DatabaseError, SQLAlchemyError) as e:
        handle_cli_error(ctx, e, "stats")
        return

    if as_json:
        click.echo(json.dumps(counts, indent=2, sort_keys=True))
        return

    click.echo("\n📊 Database Statistics")
    click.echo("=" * 50)
    for table, entry in counts.items():
        line = f"  {table:<20} {entry['total']:>8}"
        if entry.get("deleted"):
            line += f"  ({entry['deleted']} soft-deleted)"
        click.echo(line)
