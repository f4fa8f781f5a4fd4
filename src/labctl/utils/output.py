"""Rich console output helpers."""

import os

from rich.console import Console
from rich.markup import escape
from rich.table import Table

console = Console(highlight=False)


def verbose_enabled() -> bool:
    """Check if command echo is enabled via LAB_VERBOSE."""
    return os.environ.get("LAB_VERBOSE", "").strip().lower() in ("1", "true", "yes", "on")


def info(msg: str) -> None:
    """Print an info message."""
    console.print(f"[blue]\\[INFO][/blue] {msg}")


def ok(msg: str) -> None:
    """Print a success message."""
    console.print(f"[green]\\[OK][/green] {msg}")


def warn(msg: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]\\[WARN][/yellow] {msg}")


def error(msg: str) -> None:
    """Print an error message."""
    console.print(f"[red]\\[ERROR][/red] {msg}")


def debug(msg: str) -> None:
    """Print a debug message when LAB_VERBOSE is set."""
    if verbose_enabled():
        console.print(f"[dim]\\[DEBUG] {escape(msg)}[/dim]")


def section(title: str) -> None:
    """Print a section header."""
    console.print(f"\n[bold]=== {title} ===[/bold]")


def create_table(title: str, columns: list[str]) -> Table:
    """Create a table with the given columns."""
    table = Table(title=title)
    for col in columns:
        table.add_column(col)
    return table


def print_table(table: Table) -> None:
    """Print a table."""
    console.print(table)
