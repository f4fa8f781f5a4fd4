"""Host configuration templates: fetching and placeholder substitution."""

import shutil
import tempfile
from pathlib import Path

import httpx

from labctl.errors import TemplateSourceError
from labctl.utils.process import run

# Relative to /etc/nixos on the installed system
FRAGMENTS: tuple[str, ...] = (
    "configuration.nix",
    "services/nextcloud.nix",
    "services/ai-models.nix",
    "services/cloudflare-tunnel.nix",
)

DOMAIN_PLACEHOLDER = "homelab.invalid"
SECRETS_DIR_PLACEHOLDER = "@SECRETS_DIR@"
ADMIN_USER_PLACEHOLDER = "@ADMIN_USER@"


def is_git_source(source: str) -> bool:
    """Check if a template source names a git repository."""
    return source.startswith(("git@", "git+", "ssh://")) or source.endswith(".git")


def is_http_source(source: str) -> bool:
    """Check if a template source is a plain HTTP(S) base URL."""
    return source.startswith(("http://", "https://")) and not source.endswith(".git")


def _copy_from_dir(src_dir: Path, dest_dir: Path) -> None:
    missing = [f for f in FRAGMENTS if not (src_dir / f).is_file()]
    if missing:
        raise TemplateSourceError(f"{src_dir} is missing: {', '.join(missing)}")
    for fragment in FRAGMENTS:
        dest = dest_dir / fragment
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src_dir / fragment, dest)


def _clone(source: str, dest_dir: Path) -> None:
    url = source.removeprefix("git+")
    with tempfile.TemporaryDirectory(prefix="labctl-templates-") as tmp:
        checkout = Path(tmp) / "repo"
        result = run(["git", "clone", "--depth", "1", url, str(checkout)], timeout=300)
        if not result.success:
            raise TemplateSourceError(f"Could not clone {url}: {result.stderr.strip()}")
        _copy_from_dir(checkout, dest_dir)


def _download(base_url: str, dest_dir: Path) -> None:
    base = base_url.rstrip("/")
    fetched: dict[str, str] = {}
    try:
        with httpx.Client(timeout=15, follow_redirects=True) as client:
            for fragment in FRAGMENTS:
                resp = client.get(f"{base}/{fragment}")
                resp.raise_for_status()
                fetched[fragment] = resp.text
    except httpx.HTTPError as e:
        raise TemplateSourceError(f"Could not download templates from {base}: {e}") from None

    # Only write once every fragment arrived
    for fragment, text in fetched.items():
        dest = dest_dir / fragment
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_text(text)


def fetch_templates(source: str | Path, dest_dir: Path) -> None:
    """Copy every fragment from ``source`` into ``dest_dir``.

    ``source`` may be a local directory, a git repository URL or an HTTP(S)
    base URL under which the fragments live.

    Raises:
        TemplateSourceError: If the source is unreachable or incomplete.
    """
    src = str(source)
    if is_git_source(src):
        _clone(src, dest_dir)
    elif is_http_source(src):
        _download(src, dest_dir)
    else:
        path = Path(src)
        if not path.is_dir():
            raise TemplateSourceError(f"Template directory {path} does not exist")
        _copy_from_dir(path, dest_dir)


def missing_fragments(dest_dir: Path) -> list[str]:
    """Fragments not present under ``dest_dir``."""
    return [f for f in FRAGMENTS if not (dest_dir / f).is_file()]


def substitute(path: Path, replacements: dict[str, str]) -> int:
    """Replace every placeholder in ``path`` in place; returns the count."""
    text = path.read_text()
    count = 0
    for placeholder, value in replacements.items():
        count += text.count(placeholder)
        text = text.replace(placeholder, value)
    if count:
        path.write_text(text)
    return count


def contains(path: Path, token: str) -> bool:
    """Check if a rendered fragment still carries ``token``."""
    return path.is_file() and token in path.read_text()
