"""Configuration paths and settings management."""

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_BOOT_DEVICE = "/dev/sdb"
DEFAULT_MODELS_DEVICE = "/dev/sda"
DEFAULT_CLOUD_DEVICE = "/dev/nvme0n1"
DEFAULT_TARGET_ROOT = "/mnt"
DEFAULT_SECRETS_DIR = "/var/lib/secrets"
DEFAULT_STATE_FILE = "/var/lib/labctl/state.yaml"
DEFAULT_PROBE_URL = "https://cache.nixos.org"
DEFAULT_LABEL_TIMEOUT = 30.0
DEFAULT_ADMIN_USER = "lab"

# Bundled configuration templates, used when LAB_TEMPLATE_SOURCE is unset
BUNDLED_TEMPLATES = Path(__file__).resolve().parent.parent / "templates"

_TRUE_VALUES = {"1", "true", "yes", "on"}

# Valid domain: dot-separated labels of letters, digits and hyphens
VALID_DOMAIN_PATTERN = re.compile(
    r"^(?=.{1,253}$)([a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?\.)+[a-zA-Z]{2,63}$"
)


def _flag(environ: Mapping[str, str], name: str) -> bool:
    return environ.get(name, "").strip().lower() in _TRUE_VALUES


def validate_domain(domain: str) -> bool:
    """Validate a public domain name such as ``example.com``."""
    return bool(VALID_DOMAIN_PATTERN.match(domain or ""))


@dataclass
class LabConfig:
    """Settings for one provisioning run, built once at start-up."""

    boot_device: str = DEFAULT_BOOT_DEVICE
    models_device: str = DEFAULT_MODELS_DEVICE
    cloud_device: str = DEFAULT_CLOUD_DEVICE
    template_source: str | None = None
    template_fallback: Path | None = None
    domain: str | None = None
    dry_run: bool = False
    skip_destructive: bool = False
    noninteractive: bool = False
    target_root: Path = field(default_factory=lambda: Path(DEFAULT_TARGET_ROOT))
    secrets_dir: str = DEFAULT_SECRETS_DIR
    state_file: Path = field(default_factory=lambda: Path(DEFAULT_STATE_FILE))
    probe_url: str = DEFAULT_PROBE_URL
    label_timeout: float = DEFAULT_LABEL_TIMEOUT
    admin_user: str = DEFAULT_ADMIN_USER

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "LabConfig":
        """Build the configuration from LAB_* environment variables."""
        env = os.environ if environ is None else environ

        fallback = env.get("LAB_TEMPLATE_FALLBACK") or None
        timeout_raw = env.get("LAB_LABEL_TIMEOUT", "")
        try:
            label_timeout = float(timeout_raw) if timeout_raw else DEFAULT_LABEL_TIMEOUT
        except ValueError:
            raise ValueError(f"LAB_LABEL_TIMEOUT must be a number, got '{timeout_raw}'") from None

        return cls(
            boot_device=env.get("LAB_BOOT_DEVICE") or DEFAULT_BOOT_DEVICE,
            models_device=env.get("LAB_MODELS_DEVICE") or DEFAULT_MODELS_DEVICE,
            cloud_device=env.get("LAB_CLOUD_DEVICE") or DEFAULT_CLOUD_DEVICE,
            template_source=env.get("LAB_TEMPLATE_SOURCE") or None,
            template_fallback=Path(fallback) if fallback else None,
            domain=env.get("LAB_DOMAIN") or None,
            dry_run=_flag(env, "LAB_DRY_RUN"),
            skip_destructive=_flag(env, "LAB_SKIP_DESTRUCTIVE"),
            noninteractive=_flag(env, "LAB_NONINTERACTIVE"),
            target_root=Path(env.get("LAB_TARGET_ROOT") or DEFAULT_TARGET_ROOT),
            secrets_dir=env.get("LAB_SECRETS_DIR") or DEFAULT_SECRETS_DIR,
            state_file=Path(env.get("LAB_STATE_FILE") or DEFAULT_STATE_FILE),
            probe_url=env.get("LAB_PROBE_URL") or DEFAULT_PROBE_URL,
            label_timeout=label_timeout,
            admin_user=env.get("LAB_ADMIN_USER") or DEFAULT_ADMIN_USER,
        )

    @classmethod
    def for_running_host(cls, environ: Mapping[str, str] | None = None) -> "LabConfig":
        """Configuration for helpers run on the installed system.

        Paths resolve against ``/`` unless LAB_TARGET_ROOT says otherwise.
        """
        env = os.environ if environ is None else environ
        config = cls.from_env(env)
        if not env.get("LAB_TARGET_ROOT"):
            config.target_root = Path("/")
        return config

    @property
    def installs_into_mount(self) -> bool:
        """True when the target is a mounted tree rather than the running system."""
        return self.target_root.resolve() != Path("/")

    def in_target(self, path: str | Path) -> Path:
        """Map an absolute path of the installed system into the target root."""
        return self.target_root / str(path).lstrip("/")

    @property
    def nixos_dir(self) -> Path:
        """Where configuration fragments are written."""
        return self.in_target("/etc/nixos")

    @property
    def secrets_path(self) -> Path:
        """Secret directory as seen from the provisioning host."""
        return self.in_target(self.secrets_dir)

    @property
    def device_paths(self) -> dict[str, str]:
        """Expected block devices keyed by disk name."""
        return {
            "boot": self.boot_device,
            "models": self.models_device,
            "cloud": self.cloud_device,
        }
