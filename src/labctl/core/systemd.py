"""Service manager and container runtime queries."""

import json

from labctl.utils.process import CommandResult, command_exists, run, run_sudo


def is_active(unit: str) -> bool:
    """Check if a systemd unit is active."""
    result = run(["systemctl", "is-active", unit])
    return result.success and result.stdout.strip() == "active"


def restart(unit: str) -> CommandResult:
    """Restart a systemd unit."""
    return run_sudo(["systemctl", "restart", unit])


def start(unit: str) -> CommandResult:
    """Start a systemd unit."""
    return run_sudo(["systemctl", "start", unit])


def show_journal(unit: str, lines: int = 50) -> CommandResult:
    """Print the tail of a unit's journal straight to the terminal."""
    return run(["journalctl", "-u", unit, "-n", str(lines), "--no-pager"], capture=False)


def podman_available() -> bool:
    """Check if the podman container runtime is installed."""
    return command_exists("podman")


def running_containers() -> dict[str, str] | None:
    """Map container name to status for running containers.

    Returns None if podman cannot be queried.
    """
    result = run_sudo(["podman", "ps", "--format", "json"])
    if not result.success:
        return None
    try:
        containers = json.loads(result.stdout or "[]")
    except json.JSONDecodeError:
        return None

    status: dict[str, str] = {}
    for container in containers or []:
        names = container.get("Names") or []
        if isinstance(names, str):
            names = [names]
        for name in names:
            status[name] = container.get("Status") or container.get("State") or "running"
    return status
