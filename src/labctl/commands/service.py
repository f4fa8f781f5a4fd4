"""Host-level helper commands: status, restart, logs, update."""

import typer

from labctl.core import systemd
from labctl.core.config import LabConfig
from labctl.core.environment import get_hostname
from labctl.core.services import SERVICES, get_service
from labctl.provision.state import load_state
from labctl.provision.verify import collect_checks, known_tunnels, render_report
from labctl.utils.output import error, info, ok, section, warn
from labctl.utils.process import run_sudo


def _units() -> dict[str, str]:
    """Map every restartable service name to its systemd unit."""
    config = LabConfig.for_running_host()
    units = {s.name: s.unit for s in SERVICES if s.autostart}
    for tunnel in known_tunnels(config, load_state(config.state_file).tunnels):
        if tunnel.unit:
            units[tunnel.name] = tunnel.unit
    return units


def status() -> None:
    """Show container and tunnel health."""
    config = LabConfig.for_running_host()
    section(f"Lab Status ({get_hostname()})")
    recorded = load_state(config.state_file).tunnels
    render_report(collect_checks(config, recorded))


def restart(
    service: str | None = typer.Argument(None, help="Container or tunnel name (default: all)"),
) -> None:
    """Restart one declared service, or all of them."""
    units = _units()
    if service is not None:
        unit = units.get(service)
        if unit is None:
            descriptor = get_service(service)
            unit = descriptor.unit if descriptor else None
        if unit is None:
            error(f"Unknown service '{service}'")
            info(f"Known services: {', '.join(sorted(units))}")
            raise typer.Exit(1)
        units = {service: unit}

    failed = 0
    for name, unit in units.items():
        result = systemd.restart(unit)
        if result.success:
            ok(f"Restarted {name}")
        else:
            error(f"Failed to restart {name}: {result.stderr.strip()}")
            failed += 1
    if failed:
        raise typer.Exit(1)


def logs(
    service: str = typer.Argument(..., help="Container, tunnel or unit name"),
    lines: int = typer.Option(50, "--lines", "-n", help="Number of journal lines"),
) -> None:
    """Show recent journal lines for a service."""
    unit = _units().get(service)
    if unit is None:
        descriptor = get_service(service)
        unit = descriptor.unit if descriptor else service
    systemd.show_journal(unit, lines)


def update() -> None:
    """Upgrade channels and rebuild the system."""
    section("System Update")
    result = run_sudo(["nixos-rebuild", "switch", "--upgrade"], capture=False)
    if result.success:
        ok("System updated")
    else:
        warn("nixos-rebuild reported an error; previous generation is still active")
        raise typer.Exit(1)
