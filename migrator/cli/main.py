"""CLI entry point for migrator."""

import os
from typing import Annotated, Optional

import typer
from rich.console import Console

from migrator import __version__
from migrator.cli.commands.migrate import migrate_app
from migrator.core.config import get_settings, reset_settings
from migrator.log.logging import configure_logging

# Create main app
app = typer.Typer(
    name="migrator",
    help="Migrator CLI - Create, apply and roll back database migrations",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Register sub-commands
app.add_typer(migrate_app, name="migrate", help="Database migration commands")

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"migrator version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
    database_url: Annotated[
        Optional[str],
        typer.Option("--database-url", "-d", envvar="DATABASE_URL", help="SQLAlchemy database URL"),
    ] = None,
    migrations_dir: Annotated[
        Optional[str],
        typer.Option("--dir", envvar="MIGRATIONS_DIR", help="Directory holding migration files"),
    ] = None,
    table: Annotated[
        Optional[str],
        typer.Option("--table", envvar="MIGRATIONS_TABLE", help="Ledger table name"),
    ] = None,
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", "-l", envvar="LOG_LEVEL", help="Log level (DEBUG, INFO, WARNING)"),
    ] = None,
) -> None:
    """
    Migrator CLI.

    Migrations are Python files named after their identifier
    (e.g. 2024_01_31_120000_000000_add_users_table.py). Each applied migration
    is recorded in a ledger table so it runs only once.

    [bold]Quick Start:[/bold]

        # Create the ledger table
        migrator migrate install

        # Scaffold a migration from a template
        migrator migrate create add_users_table -t add_table -r table=users

        # Apply all pending migrations
        migrator migrate up

        # Roll back the most recent migration
        migrator migrate down

    [bold]Environment Variables:[/bold]

        DATABASE_URL              - SQLAlchemy database URL
        MIGRATIONS_DIR            - Directory holding migration files
        MIGRATIONS_TABLE          - Ledger table name
        MIGRATIONS_TEMPLATES_DIR  - Directory with extra *.tpl templates
    """
    # Override config with CLI options
    if database_url:
        os.environ["DATABASE_URL"] = database_url
    if migrations_dir:
        os.environ["MIGRATIONS_DIR"] = migrations_dir
    if table:
        os.environ["MIGRATIONS_TABLE"] = table
    if log_level:
        os.environ["LOG_LEVEL"] = log_level

    # Reset cached config
    reset_settings()
    configure_logging(**get_settings().logging_config)


if __name__ == "__main__":
    app()
