"""Main CLI application."""

import typer

from labctl import __version__
from labctl.commands import ai, backup, service, tunnel
from labctl.core.config import LabConfig
from labctl.errors import LabError
from labctl.provision.runner import provision, step_ids
from labctl.utils.output import error, ok, section, warn

app = typer.Typer(
    name="labctl",
    help="Home-lab host provisioning (NixOS + Ollama + Nextcloud + Cloudflare tunnels)",
    rich_markup_mode="rich",
)

# Add subcommand groups
app.add_typer(ai.app, name="ai")
app.add_typer(tunnel.app, name="tunnel")
app.add_typer(backup.app, name="backup")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"labctl {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    start_at: str | None = typer.Option(
        None, "--start-at", help=f"Start at step ({', '.join(step_ids())})"
    ),
    stop_after: str | None = typer.Option(None, "--stop-after", help="Stop after step"),
    force: bool = typer.Option(
        False, "--force", help="Re-run steps even if their artifacts already exist"
    ),
) -> None:
    """Provision the lab host. Without a subcommand, runs the full sequence.

    Settings come from LAB_* environment variables (devices, domain,
    template source, LAB_DRY_RUN, LAB_SKIP_DESTRUCTIVE, LAB_NONINTERACTIVE).
    """
    if ctx.invoked_subcommand is not None:
        return

    try:
        config = LabConfig.from_env()
    except ValueError as e:
        error(str(e))
        raise typer.Exit(2) from None

    section("Lab Host Provisioning")
    if config.dry_run:
        warn("Dry run: nothing will be partitioned, formatted or installed")

    try:
        provision(config, start_at=start_at, stop_after=stop_after, force=force)
    except LabError:
        raise typer.Exit(1) from None
    except ValueError as e:
        error(str(e))
        raise typer.Exit(2) from None

    if config.dry_run:
        ok("Dry run complete")
    else:
        ok("Provisioning complete")


# Register standalone commands
app.command(name="status")(service.status)
app.command(name="restart")(service.restart)
app.command(name="logs")(service.logs)
app.command(name="update")(service.update)


if __name__ == "__main__":
    app()
