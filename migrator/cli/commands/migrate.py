"""
Migration CLI commands for managing database migrations.
"""

from typing import Annotated, Optional

import typer
from rich.table import Table

from migrator.cli.output import (
    console,
    print_error,
    print_info,
    print_migrations_table,
    print_success,
    print_warning,
)
from migrator.core.config import Settings, get_settings
from migrator.core.exceptions import MigrationError

migrate_app = typer.Typer(name="migrate", help="Database migration commands", no_args_is_help=True)


def get_db(settings: Settings):
    """Get database engine."""
    from migrator.core.database import engine_from_settings

    return engine_from_settings(settings)


def get_engine(settings: Optional[Settings] = None):
    """Get migration engine instance."""
    from migrator.migrations.engine import MigrationEngine

    settings = settings or get_settings()
    return MigrationEngine.from_settings(settings, get_db(settings))


def get_templates(settings: Settings):
    """Get templates collection, including the configured custom templates."""
    from migrator.migrations.templates import TemplatesCollection

    templates = TemplatesCollection()
    if settings.migrations_templates_dir:
        templates.register_directory(settings.migrations_templates_dir)
    return templates


def parse_replacements(values: Optional[list[str]]) -> dict[str, str]:
    """Turn ``key=value`` strings into a substitution map."""
    replace = {}
    for item in values or []:
        if "=" not in item:
            raise typer.BadParameter(f"Expected key=value, got '{item}'", param_hint="--replace")
        key, value = item.split("=", 1)
        replace[key.strip()] = value
    return replace


@migrate_app.command("install")
def install():
    """Create the ledger table."""
    try:
        engine = get_engine()
        if engine.initialize():
            print_success(f"Created ledger table [cyan]{engine.ledger.table_name}[/cyan]")
        else:
            print_info(f"Ledger table [cyan]{engine.ledger.table_name}[/cyan] already exists")
    except Exception as e:
        print_error(f"Failed to create ledger table: {e}")
        raise typer.Exit(1)


@migrate_app.command("status")
def status():
    """Show current migration status."""
    try:
        engine = get_engine()
        engine.initialize()
        result = engine.get_status()
    except Exception as e:
        print_error(f"Failed to get migration status: {e}")
        raise typer.Exit(1)

    print_migrations_table(result)


@migrate_app.command("up")
def up(
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", "-n", help="Show what would be done without applying"),
    ] = False,
):
    """Apply pending migrations."""
    from migrator.migrations.ledger import ledger_lock

    settings = get_settings()

    try:
        engine = get_engine(settings)
        engine.initialize()

        if dry_run:
            console.print("[yellow]DRY RUN - No changes will be made[/yellow]")
            console.print()
            pending = engine.compute_pending()
            if not pending:
                console.print("[green]No pending migrations to apply.[/green]")
            for identifier in pending:
                console.print(f"  • Would apply [cyan]{identifier}[/cyan]")
            return

        with ledger_lock(engine.ledger, timeout=settings.migrations_lock_timeout):
            ran = engine.run_pending()

    except Exception as e:
        print_error(f"Migration failed: {e}")
        raise typer.Exit(1)

    if ran:
        console.print()
        console.print(f"[green]Successfully applied {len(ran)} migration(s):[/green]")
        for identifier in ran:
            console.print(f"  • [cyan]{identifier}[/cyan]")

    if engine.last_error is not None:
        print_error(
            f"Migration failed: {engine.last_error}",
            details={"migration": engine.last_error.identifier, "code": engine.last_error.error_code},
        )
        raise typer.Exit(1)

    if not ran:
        console.print("[green]No pending migrations to apply.[/green]")


@migrate_app.command("down")
def down(
    migration: Annotated[
        Optional[str],
        typer.Option("--migration", "-m", help="Applied migration to roll back (default: most recent)"),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", "-n", help="Show what would be done without rolling back"),
    ] = False,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Skip confirmation prompt"),
    ] = False,
):
    """Rollback the most recent migration."""
    from migrator.migrations.ledger import ledger_lock

    settings = get_settings()

    try:
        engine = get_engine(settings)
        engine.initialize()
        applied = engine.list_applied()
    except Exception as e:
        print_error(f"Rollback failed: {e}")
        raise typer.Exit(1)

    if migration is None:
        if not applied:
            console.print("[yellow]No migrations to rollback.[/yellow]")
            return
        migration = applied[-1]
    elif migration not in applied:
        print_error(f"Migration {migration} has not been applied")
        raise typer.Exit(1)

    if dry_run:
        console.print("[yellow]DRY RUN - No changes will be made[/yellow]")
        console.print(f"  • Would roll back [cyan]{migration}[/cyan]")
        return

    if migration != applied[-1]:
        print_warning(f"{migration} is not the most recently applied migration")

    if not force:
        confirm = typer.confirm(
            f"Roll back {migration}? This may cause data loss."
        )
        if not confirm:
            console.print("[yellow]Rollback cancelled.[/yellow]")
            raise typer.Exit(0)

    try:
        with ledger_lock(engine.ledger, timeout=settings.migrations_lock_timeout):
            engine.rollback(migration)
    except MigrationError as e:
        print_error(f"Rollback failed: {e}", details={"code": e.error_code})
        raise typer.Exit(1)

    console.print()
    console.print(f"[green]Successfully rolled back:[/green] [cyan]{migration}[/cyan]")


@migrate_app.command("create")
def create(
    name: Annotated[str, typer.Argument(help="Name for the migration (use_underscores)")],
    template: Annotated[
        Optional[str],
        typer.Option("--template", "-t", help="Template name or alias (see 'templates')"),
    ] = None,
    replace: Annotated[
        Optional[list[str]],
        typer.Option("--replace", "-r", help="Template placeholder value as key=value (repeatable)"),
    ] = None,
):
    """Create a new migration file."""
    from migrator.migrations.scaffold import Scaffolder

    settings = get_settings()
    substitutions = parse_replacements(replace)

    try:
        scaffolder = Scaffolder(settings.migrations_dir, get_templates(settings))
        identifier = scaffolder.create_migration(name, template, substitutions)
    except (ValueError, MigrationError) as e:
        print_error(str(e))
        raise typer.Exit(1)

    console.print()
    console.print(f"[green]Created migration:[/green] {identifier}")
    console.print()
    console.print("Edit the file to implement your migration:")
    console.print(f"  [dim]{settings.migrations_dir}/{identifier}.py[/dim]")


@migrate_app.command("templates")
def templates():
    """List available migration templates."""
    collection = get_templates(get_settings())

    table = Table(title="Migration Templates", show_header=True)
    table.add_column("Name", style="cyan")
    table.add_column("Aliases", style="dim")
    table.add_column("Description", style="white")

    for t in collection.all():
        table.add_row(t.name, ", ".join(t.aliases), t.description)

    console.print(table)
