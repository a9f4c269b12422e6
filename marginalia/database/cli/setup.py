"""
Setup & Initialization Commands
--------------------------------

Commands:
    - init: Create the database schema
"""
import click

from marginalia.core.exceptions import DatabaseError
from marginalia.core.logging_manager import handle_cli_error
from . import get_db


@click.command()
@click.pass_context
def init(ctx):
    """Create every missing table in the configured database."""
    try:
        db = get_db(ctx)
        click.echo("🗄️  Initializing database schema...")
        db.initialize_schema()
        click.echo("✅ Database initialized!")
    except DatabaseError as e:
        handle_cli_error(ctx, e, "init")
