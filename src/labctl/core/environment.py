"""Environment detection for the provisioning host."""

import os
import socket
import stat
from enum import Enum
from pathlib import Path

# Present on every NixOS system, including the installer image
NIXOS_MARKER = Path("/etc/NIXOS")


class OSType(Enum):
    """Operating system type."""

    NIXOS = "nixos"
    LINUX = "linux"
    UNKNOWN = "unknown"


def detect_os_type() -> OSType:
    """Detect operating system type."""
    if NIXOS_MARKER.exists():
        return OSType.NIXOS

    os_release = Path("/etc/os-release")
    if os_release.exists():
        content = os_release.read_text().lower()
        if "id=nixos" in content:
            return OSType.NIXOS
        return OSType.LINUX

    return OSType.UNKNOWN


def is_root() -> bool:
    """Check if running with root privileges."""
    return os.geteuid() == 0


def is_block_device(path: str | Path) -> bool:
    """Check if ``path`` exists and is a block device (symlinks followed)."""
    try:
        return stat.S_ISBLK(os.stat(path).st_mode)
    except OSError:
        return False


def get_hostname() -> str:
    """Get the current hostname."""
    return socket.gethostname()
