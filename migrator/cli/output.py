"""Output formatting utilities for CLI."""

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

console = Console()
error_console = Console(stderr=True)


def format_status(status: str) -> Text:
    """Format status with color."""
    colors = {
        "pending": "yellow",
        "applied": "green",
        "orphaned": "red",
    }
    color = colors.get(status.lower(), "white")
    return Text(status, style=color)


def print_error(message: str, details: dict | None = None) -> None:
    """Print an error message."""
    error_console.print(f"[red]Error:[/red] {escape(message)}")
    if details:
        for key, value in details.items():
            error_console.print(f"  [dim]{key}:[/dim] {escape(str(value))}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]![/yellow] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]ℹ[/blue] {message}")


def print_migrations_table(result: dict) -> None:
    """Print every known migration with its status, followed by orphaned ledger rows."""
    console.print()
    console.print("[bold]Migration Status[/bold]")
    console.print(f"  Latest Applied: [cyan]{result['latest_applied'] or '-'}[/cyan]")
    console.print(f"  Applied:        [green]{result['applied_count']}[/green]")
    console.print(f"  Pending:        [yellow]{result['pending_count']}[/yellow]")
    console.print()

    if result["migrations"]:
        table = Table(title="Migrations", show_header=True)
        table.add_column("Migration", style="cyan")
        table.add_column("Status")

        for m in result["migrations"]:
            table.add_row(m["migration"], format_status(m["status"]))

        console.print(table)

    if result["orphaned"]:
        table = Table(title="Applied Without Script", show_header=True)
        table.add_column("Migration", style="red")
        table.add_column("Status")

        for identifier in result["orphaned"]:
            table.add_row(identifier, format_status("orphaned"))

        console.print(table)

    if not result["pending"]:
        console.print("[green]All migrations are up to date![/green]")
