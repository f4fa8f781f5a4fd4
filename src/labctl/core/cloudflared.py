"""Cloudflare tunnel management through the cloudflared CLI."""

import json
import re
from pathlib import Path

from labctl.errors import CommandError, TunnelIdNotFoundError
from labctl.utils.process import command_exists, run

# 8-4-4-4-12 hex groups, 36 characters in total
TUNNEL_ID_PATTERN = re.compile(
    r"\b[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\b", re.IGNORECASE
)


def get_cloudflared_dir() -> Path:
    """Directory where cloudflared caches its login certificate and credentials."""
    return Path.home() / ".cloudflared"


def is_installed() -> bool:
    """Check if cloudflared is installed."""
    return command_exists("cloudflared")


def is_logged_in() -> bool:
    """Check if an account certificate from a previous login exists."""
    return (get_cloudflared_dir() / "cert.pem").exists()


def login() -> None:
    """Start the browser-based login; cloudflared prints the URL to open."""
    run(["cloudflared", "tunnel", "login"], capture=False, check=True)


def extract_tunnel_id(output: str) -> str:
    """Extract the tunnel identifier from ``cloudflared tunnel create`` output.

    JSON output (``--output json``) is preferred; plain-text output falls
    back to the first UUID-shaped token.

    Raises:
        TunnelIdNotFoundError: If the output carries no identifier.
    """
    text = (output or "").strip()

    try:
        start = text.index("{")
        end = text.rindex("}") + 1
        data = json.loads(text[start:end])
        tunnel_id = data.get("id") if isinstance(data, dict) else None
        if isinstance(tunnel_id, str) and TUNNEL_ID_PATTERN.fullmatch(tunnel_id):
            return tunnel_id
    except (ValueError, json.JSONDecodeError):
        pass

    match = TUNNEL_ID_PATTERN.search(text)
    if match:
        return match.group(0)

    raise TunnelIdNotFoundError(
        "No tunnel ID in cloudflared output (login expired or creation failed)"
    )


def find_tunnel(name: str) -> str | None:
    """Return the ID of an existing tunnel with this name, if any."""
    result = run(["cloudflared", "tunnel", "list", "--output", "json", "--name", name])
    if not result.success:
        return None
    try:
        tunnels = json.loads(result.stdout or "[]")
    except json.JSONDecodeError:
        return None
    # Deleted tunnels are only listed with --show-deleted
    if not isinstance(tunnels, list):
        return None
    for tunnel in tunnels:
        if isinstance(tunnel, dict) and tunnel.get("name") == name:
            return tunnel.get("id")
    return None


def create_tunnel(name: str) -> str:
    """Create a named tunnel and return its provider-assigned ID."""
    result = run(["cloudflared", "tunnel", "create", "--output", "json", name])
    if not result.success:
        raise CommandError(["cloudflared", "tunnel", "create", name], result.returncode, result.stderr)
    return extract_tunnel_id(result.stdout + "\n" + result.stderr)


def credentials_cache_path(tunnel_id: str) -> Path:
    """Where cloudflared writes the credential file of a new tunnel."""
    return get_cloudflared_dir() / f"{tunnel_id}.json"


def read_credentials_id(path: Path) -> str | None:
    """Read the TunnelID field of a credential file."""
    try:
        data = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError):
        return None
    tunnel_id = data.get("TunnelID") if isinstance(data, dict) else None
    return tunnel_id if isinstance(tunnel_id, str) and tunnel_id else None


def route_dns(name: str, hostname: str) -> None:
    """Point ``hostname`` at the tunnel, replacing an existing record."""
    run(
        ["cloudflared", "tunnel", "route", "dns", "--overwrite-dns", name, hostname],
        check=True,
    )
