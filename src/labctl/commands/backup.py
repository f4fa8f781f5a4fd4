"""Backup commands (trigger the periodic backup services on demand)."""

import typer

from labctl.core import systemd
from labctl.core.services import BACKUP_SERVICES
from labctl.utils.output import error, info, ok

app = typer.Typer(
    name="backup",
    help="Run periodic backups on demand",
    no_args_is_help=True,
)


@app.command("list")
def list_backups() -> None:
    """List backup services and whether their timers are active."""
    for name in BACKUP_SERVICES:
        timer = f"{name}.timer"
        state = "scheduled" if systemd.is_active(timer) else "timer inactive"
        info(f"{name}: {state}")


@app.command()
def run(
    name: str = typer.Argument(..., help="Backup service, e.g. nextcloud-backup"),
) -> None:
    """Start a backup service now."""
    if name not in BACKUP_SERVICES:
        error(f"Unknown backup '{name}' (choose from {', '.join(BACKUP_SERVICES)})")
        raise typer.Exit(1)

    result = systemd.start(f"{name}.service")
    if result.success:
        ok(f"{name} started")
    else:
        error(f"{name} failed to start: {result.stderr.strip()}")
        raise typer.Exit(1)
