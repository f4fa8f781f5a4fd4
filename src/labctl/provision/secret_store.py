"""Secret collection step and restricted secret-file helpers."""

import os
import secrets
import stat
from dataclasses import dataclass
from pathlib import Path

from labctl.provision.pipeline import ProvisionContext
from labctl.utils.output import info, ok
from labctl.utils.prompts import read_confirmed_secret

SECRET_FILE_MODE = 0o600
SECRET_DIR_MODE = 0o700


@dataclass(frozen=True)
class SecretSpec:
    """A credential the host needs, stored as one file."""

    name: str
    label: str
    confirm: bool = False
    generated: bool = False


SECRETS: tuple[SecretSpec, ...] = (
    SecretSpec("cloudflare-token", "Cloudflare API token"),
    SecretSpec("nextcloud-admin-pass", "Nextcloud admin password", confirm=True),
    SecretSpec("nextcloud-db-pass", "Nextcloud database password", confirm=True),
    SecretSpec("open-webui-secret-key", "Open WebUI session key", generated=True),
)


def ensure_secret_dir(path: Path) -> None:
    """Create the secret directory, accessible only to its owner."""
    path.mkdir(parents=True, exist_ok=True)
    os.chmod(path, SECRET_DIR_MODE)


def write_secret_file(path: Path, content: str | bytes) -> None:
    """Write a file that is created with owner-only permissions."""
    data = content.encode() if isinstance(content, str) else content
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, SECRET_FILE_MODE)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    os.chmod(path, SECRET_FILE_MODE)


def restrict_permissions(directory: Path) -> int:
    """Set owner read/write only on every file in ``directory``."""
    count = 0
    for path in sorted(directory.iterdir()):
        if path.is_file():
            os.chmod(path, SECRET_FILE_MODE)
            count += 1
    return count


def has_mode(path: Path, mode: int) -> bool:
    """Check the permission bits of ``path``."""
    return stat.S_IMODE(path.stat().st_mode) == mode


def secret_present(path: Path) -> bool:
    """A secret counts as present if its file exists and is not empty."""
    return path.is_file() and path.stat().st_size > 0


class SecretStep:
    step_id = "secrets"
    title = "Secrets"
    read_only = False

    def is_done(self, ctx: ProvisionContext) -> bool:
        directory = ctx.config.secrets_path
        if not directory.is_dir() or not has_mode(directory, SECRET_DIR_MODE):
            return False
        for spec in SECRETS:
            path = directory / spec.name
            if not secret_present(path) or not has_mode(path, SECRET_FILE_MODE):
                return False
        return True

    def plan(self, ctx: ProvisionContext) -> list[str]:
        directory = ctx.config.secrets_path
        actions = [f"Create {directory} (mode 700)"]
        for spec in SECRETS:
            path = directory / spec.name
            if secret_present(path):
                actions.append(f"Keep existing {path}")
            elif spec.generated:
                actions.append(f"Generate {path}")
            else:
                actions.append(f"Prompt for {spec.label} -> {path}")
        actions.append(f"chmod 600 {directory}/*")
        return actions

    def run(self, ctx: ProvisionContext) -> None:
        directory = ctx.config.secrets_path
        ensure_secret_dir(directory)

        for spec in SECRETS:
            path = directory / spec.name
            if secret_present(path):
                info(f"{spec.name}: already stored")
                continue
            if spec.generated:
                value = secrets.token_urlsafe(32)
            else:
                value = read_confirmed_secret(ctx.prompts, spec.name, spec.label, confirm=spec.confirm)
            write_secret_file(path, value)
            ok(f"{spec.name}: stored")

        # Final pass over every file, including ones written by earlier runs
        count = restrict_permissions(directory)
        ok(f"Restricted permissions on {count} secret file(s) in {directory}")
