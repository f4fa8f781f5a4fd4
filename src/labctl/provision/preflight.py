"""Preflight checks run before any destructive action."""

import httpx

from labctl.core.config import LabConfig
from labctl.core.environment import OSType, detect_os_type, is_block_device, is_root
from labctl.errors import PreflightError
from labctl.provision.pipeline import ProvisionContext
from labctl.utils.output import ok
from labctl.utils.process import command_exists

REQUIRED_COMMANDS = (
    "parted",
    "mkfs.fat",
    "mkfs.ext4",
    "udevadm",
    "findmnt",
    "nixos-generate-config",
    "nixos-install",
)


def check_reachable(url: str, timeout: float = 5.0) -> bool:
    """Return True if an HTTP request to ``url`` gets any response."""
    try:
        httpx.head(url, timeout=timeout, follow_redirects=True)
        return True
    except httpx.HTTPError:
        return False


def collect_failures(config: LabConfig) -> list[str]:
    """Run every check and return one message per failed precondition."""
    failures: list[str] = []

    if detect_os_type() != OSType.NIXOS:
        failures.append("Not running on NixOS (/etc/NIXOS missing); boot the NixOS installer first")

    if not is_root():
        failures.append("Must run as root")

    missing = [cmd for cmd in REQUIRED_COMMANDS if not command_exists(cmd)]
    if missing:
        failures.append(f"Required commands not found: {', '.join(missing)}")

    if not check_reachable(config.probe_url):
        failures.append(f"Network check failed: {config.probe_url} is not reachable")

    for disk, path in config.device_paths.items():
        if not is_block_device(path):
            failures.append(f"{disk} device {path} is not a block device")

    return failures


class PreflightStep:
    step_id = "preflight"
    title = "Preflight"
    read_only = True

    def is_done(self, ctx: ProvisionContext) -> bool:
        # Preconditions can change between runs; always re-check.
        return False

    def plan(self, ctx: ProvisionContext) -> list[str]:
        return ["Check OS, privileges, tools, network and block devices"]

    def run(self, ctx: ProvisionContext) -> None:
        failures = collect_failures(ctx.config)
        if failures:
            raise PreflightError("; ".join(failures))
        if ctx.config.dry_run:
            ok("All preflight checks passed")
