"""Service verification: a one-shot health report, never a gate."""

from dataclasses import dataclass

from labctl.core import cloudflared, systemd
from labctl.core.config import LabConfig
from labctl.core.ollama import OllamaClient
from labctl.core.services import SERVICES, Tunnel, default_tunnels
from labctl.provision.pipeline import ProvisionContext
from labctl.provision.tunnels import credentials_name
from labctl.utils.output import create_table, info, ok, print_table, warn


@dataclass
class ServiceCheck:
    """Outcome of one status probe."""

    name: str
    passed: bool
    detail: str = ""


def known_tunnels(config: LabConfig, recorded: dict[str, str] | None = None) -> list[Tunnel]:
    """Tunnels with identifiers taken from stored credentials or the journal."""
    tunnels = default_tunnels()
    for tunnel in tunnels:
        creds = config.secrets_path / credentials_name(tunnel)
        tunnel.tunnel_id = cloudflared.read_credentials_id(creds) if creds.exists() else None
        if not tunnel.tunnel_id and recorded:
            tunnel.tunnel_id = recorded.get(tunnel.name)
    return tunnels


def collect_checks(config: LabConfig, recorded: dict[str, str] | None = None) -> list[ServiceCheck]:
    """Probe the container runtime, each auto-start container and each tunnel."""
    checks: list[ServiceCheck] = []

    containers = systemd.running_containers() if systemd.podman_available() else None
    if containers is None:
        checks.append(ServiceCheck("podman", False, "container runtime not responding"))
    else:
        checks.append(ServiceCheck("podman", True, f"{len(containers)} container(s) running"))

    for service in SERVICES:
        if not service.autostart:
            continue
        status = (containers or {}).get(service.name)
        checks.append(ServiceCheck(service.name, status is not None, status or "not running"))

    client = OllamaClient()
    checks.append(
        ServiceCheck(
            "ollama-api",
            client.is_running(),
            client.base_url,
        )
    )

    for tunnel in known_tunnels(config, recorded):
        if not tunnel.unit:
            checks.append(ServiceCheck(tunnel.name, False, "no tunnel ID (not bootstrapped)"))
            continue
        active = systemd.is_active(tunnel.unit)
        checks.append(ServiceCheck(tunnel.name, active, tunnel.unit if active else f"{tunnel.unit} inactive"))

    return checks


def render_report(checks: list[ServiceCheck]) -> int:
    """Print a pass/fail line per service; returns the number of failures."""
    table = create_table("Service Status", ["Service", "Status", "Detail"])
    for check in checks:
        status = "[green]PASS[/green]" if check.passed else "[red]FAIL[/red]"
        table.add_row(check.name, status, check.detail)
    print_table(table)

    failures = sum(1 for c in checks if not c.passed)
    if failures == 0:
        ok("All services operational")
    else:
        warn(f"{failures} service(s) not healthy")
    return failures


class VerifyStep:
    step_id = "verify"
    title = "Service Verification"
    read_only = True

    def is_done(self, ctx: ProvisionContext) -> bool:
        return False

    def plan(self, ctx: ProvisionContext) -> list[str]:
        return ["Report container and tunnel status"]

    def run(self, ctx: ProvisionContext) -> None:
        if ctx.config.installs_into_mount:
            info("Services start on first boot of the installed system; failures below are expected")
        render_report(collect_checks(ctx.config, ctx.state.tunnels))
