#!/usr/bin/env python3
"""
Marginalia Database Management CLI
----------------------------------

Command-line interface for maintaining the Marginalia store.

This module provides the main CLI group and shared context setup
for all database commands.

Command Structure:
    - Setup & Initialization (init)
    - Statistics (stats)
    - Hard-delete sweep (purge)

Usage:
    # Create the schema in the configured database
    marginalia-db --config marginalia.yaml init

    # Preview what the sweep would remove
    marginalia-db purge --dry-run

    # Purge everything soft-deleted more than 48 hours ago
    marginalia-db --db-url postgresql://localhost/marginalia purge --retention-hours 48
"""
import click
from pathlib import Path

from marginalia.core.config import MarginaliaConfig
from marginalia.core.exceptions import ConfigError
from marginalia.core.logging_manager import handle_cli_error
from marginalia.database import MarginaliaDB


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to YAML configuration file",
)
@click.option("--db-url", default=None, help="SQLAlchemy database URL")
@click.option("--domain", default=None, help="Base URL of public ids")
@click.option(
    "--log-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Path to log directory",
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Show detailed errors and tracebacks",
)
@click.pass_context
def cli(ctx, config_path, db_url, domain, log_dir, verbose):
    """Marginalia Database Management CLI"""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    try:
        config = (
            MarginaliaConfig.from_yaml(config_path) if config_path else MarginaliaConfig()
        )
        ctx.obj["config"] = config.with_overrides(
            database_url=db_url,
            domain=domain,
            log_dir=Path(log_dir) if log_dir else None,
        )
    except ConfigError as e:
        handle_cli_error(ctx, e, "config")


def get_db(ctx) -> MarginaliaDB:
    """Get or create database instance from context."""
    if "db" not in ctx.obj:
        ctx.obj["db"] = MarginaliaDB(ctx.obj["config"])
        ctx.obj["logger"] = ctx.obj["db"].logger
    return ctx.obj["db"]


# Import and register command modules
# These imports must come after CLI group definition
from .setup import init  # noqa: E402
from .maintenance import stats  # noqa: E402
from .purge import purge  # noqa: E402

cli.add_command(init)
cli.add_command(stats)
cli.add_command(purge)
