"""Declared containers and tunnels of the lab host.

These mirror what the bundled NixOS templates define; they are read-only
descriptions used by the verifier and the helper commands.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ServiceDescriptor:
    """A container the host runs through podman."""

    name: str
    image: str
    ports: tuple[str, ...] = ()
    volumes: tuple[str, ...] = ()
    autostart: bool = True

    @property
    def unit(self) -> str:
        """systemd unit NixOS generates for an oci-container."""
        return f"podman-{self.name}.service"

    @property
    def host_port(self) -> int | None:
        """First published host port, if any."""
        if not self.ports:
            return None
        return int(self.ports[0].split(":")[0])


SERVICES: tuple[ServiceDescriptor, ...] = (
    ServiceDescriptor(
        name="ollama",
        image="ollama/ollama:latest",
        ports=("11434:11434",),
        volumes=("/mnt/ai-models:/root/.ollama", "/var/lib/ai-models:/models"),
    ),
    ServiceDescriptor(
        name="open-webui",
        image="ghcr.io/open-webui/open-webui:main",
        ports=("3000:8080",),
        volumes=("open-webui:/app/backend/data",),
    ),
    ServiceDescriptor(
        name="text-generation-webui",
        image="atinoda/text-generation-webui:default",
        ports=("7860:7860",),
        volumes=("/mnt/ai-models/text-generation:/app/models",),
        autostart=False,
    ),
    ServiceDescriptor(
        name="stable-diffusion-webui",
        image="ghcr.io/abdbarho/stable-diffusion-webui-docker:master",
        ports=("7861:7860",),
        volumes=("/mnt/ai-models/stable-diffusion:/app/models",),
        autostart=False,
    ),
)

# Periodic backup units defined by the templates
BACKUP_SERVICES: tuple[str, ...] = ("nextcloud-backup", "ai-models-backup")


def get_service(name: str) -> ServiceDescriptor | None:
    """Look up a declared container by name."""
    return next((s for s in SERVICES if s.name == name), None)


@dataclass
class Tunnel:
    """A named tunnel exposing one local service under a public hostname.

    ``tunnel_id`` is assigned by the provider at creation time.
    """

    name: str
    subdomain: str
    local_port: int
    tunnel_id: str | None = None
    credentials_file: str | None = None
    ingress: dict[str, str] = field(default_factory=dict)

    def hostname(self, domain: str) -> str:
        return f"{self.subdomain}.{domain}"

    def build_ingress(self, domain: str) -> dict[str, str]:
        """Hostname to origin mapping, with the catch-all rule last."""
        self.ingress = {
            self.hostname(domain): f"http://localhost:{self.local_port}",
            "*": "http_status:404",
        }
        return self.ingress

    @property
    def placeholder(self) -> str:
        """Token the templates carry until the real identifier is known."""
        return "TUNNEL_ID_" + self.name.upper().replace("-", "_")

    @property
    def unit(self) -> str | None:
        """systemd unit NixOS generates for this tunnel."""
        if not self.tunnel_id:
            return None
        return f"cloudflared-tunnel-{self.tunnel_id}.service"


def default_tunnels() -> list[Tunnel]:
    """Fresh tunnel definitions (identifiers not yet known)."""
    return [
        Tunnel(name="ai-tunnel", subdomain="ai", local_port=3000),
        Tunnel(name="nextcloud-tunnel", subdomain="cloud", local_port=80),
    ]
