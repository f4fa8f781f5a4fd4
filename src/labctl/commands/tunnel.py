"""Cloudflare tunnel commands."""

import httpx
import typer

from labctl.core import systemd
from labctl.core.config import LabConfig
from labctl.provision.state import load_state
from labctl.provision.verify import known_tunnels
from labctl.utils.output import create_table, error, info, ok, print_table, section, warn

app = typer.Typer(
    name="tunnel",
    help="Cloudflare tunnel status and endpoint checks",
    no_args_is_help=True,
)


def probe(url: str, timeout: float = 10.0) -> str | None:
    """Return the HTTP status of ``url`` as text, or None if unreachable."""
    try:
        resp = httpx.head(url, timeout=timeout, follow_redirects=True)
        return str(resp.status_code)
    except httpx.HTTPError:
        return None


@app.command()
def status() -> None:
    """Show the tunnel identifiers and service states."""
    config = LabConfig.for_running_host()
    state = load_state(config.state_file)
    domain = config.domain or state.domain

    section("Tunnels")
    for tunnel in known_tunnels(config, state.tunnels):
        host = tunnel.hostname(domain) if domain else f"{tunnel.subdomain}.<domain>"
        if not tunnel.unit:
            warn(f"{tunnel.name} ({host}): not bootstrapped")
        elif systemd.is_active(tunnel.unit):
            ok(f"{tunnel.name} ({host}): {tunnel.tunnel_id} active")
        else:
            error(f"{tunnel.name} ({host}): {tunnel.unit} inactive")


@app.command()
def test() -> None:
    """Probe public hostnames and local origins (diagnostic only)."""
    config = LabConfig.for_running_host()
    state = load_state(config.state_file)
    domain = config.domain or state.domain
    if not domain:
        error("Domain unknown; set LAB_DOMAIN")
        raise typer.Exit(1)

    table = create_table("Endpoints", ["Tunnel", "URL", "Result"])
    for tunnel in known_tunnels(config, state.tunnels):
        public = f"https://{tunnel.hostname(domain)}"
        local = f"http://localhost:{tunnel.local_port}"
        for url in (public, local):
            code = probe(url)
            result = f"[green]{code}[/green]" if code else "[red]unreachable[/red]"
            table.add_row(tunnel.name, url, result)
    print_table(table)
    info("Results are informational; a failed probe does not change the exit code")
