"""Home-lab host provisioning tools (NixOS + containers + Cloudflare tunnels)."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("labctl")
except PackageNotFoundError:
    __version__ = "0.0.0.dev"
