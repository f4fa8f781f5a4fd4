"""Tunnel bootstrap step: create tunnels, store credentials, route DNS."""

from labctl.core import cloudflared, templates
from labctl.core.services import Tunnel, default_tunnels
from labctl.errors import CommandError, LabError, OperatorInputRequired, TemplateSourceError
from labctl.provision.materialize import resolve_domain
from labctl.provision.pipeline import ProvisionContext
from labctl.provision.secret_store import ensure_secret_dir, write_secret_file
from labctl.utils.output import info, ok
from labctl.utils.process import run

TUNNEL_FRAGMENT = "services/cloudflare-tunnel.nix"


def credentials_name(tunnel: Tunnel) -> str:
    return f"cloudflare-{tunnel.name}.json"


def ensure_login(ctx: ProvisionContext) -> None:
    """Make sure cloudflared holds an account certificate."""
    if cloudflared.is_logged_in():
        info("cloudflared already logged in")
        return
    if not ctx.prompts.interactive:
        raise OperatorInputRequired("cloudflared login needs a browser; run interactively")
    info("Starting Cloudflare login; open the printed URL in a browser")
    cloudflared.login()
    ctx.prompts.acknowledge("Continue once the browser login has completed")
    if not cloudflared.is_logged_in():
        raise LabError("cloudflared login did not produce a certificate")


def bootstrap_tunnel(ctx: ProvisionContext, tunnel: Tunnel) -> None:
    """Create (or reuse) one tunnel and store its credential file."""
    config = ctx.config
    dest = config.secrets_path / credentials_name(tunnel)
    tunnel.credentials_file = f"{config.secrets_dir}/{credentials_name(tunnel)}"

    existing = cloudflared.read_credentials_id(dest) if dest.exists() else None
    if existing:
        tunnel.tunnel_id = existing
        info(f"{tunnel.name}: reusing stored credentials ({existing})")
    else:
        tunnel_id = cloudflared.find_tunnel(tunnel.name)
        if tunnel_id:
            info(f"{tunnel.name}: exists as {tunnel_id}")
        else:
            tunnel_id = cloudflared.create_tunnel(tunnel.name)
            ok(f"{tunnel.name}: created {tunnel_id}")

        cache = cloudflared.credentials_cache_path(tunnel_id)
        if not cache.exists():
            raise LabError(
                f"Credentials for {tunnel.name} not found at {cache}; "
                f"delete the tunnel with 'cloudflared tunnel delete {tunnel.name}' and re-run"
            )
        write_secret_file(dest, cache.read_bytes())
        tunnel.tunnel_id = tunnel_id
        ok(f"{tunnel.name}: credentials stored in {dest}")

    ctx.state.tunnels[tunnel.name] = tunnel.tunnel_id


def reapply_configuration(ctx: ProvisionContext) -> None:
    """Rebuild the system so the tunnel services see the real identifiers."""
    config = ctx.config
    if config.installs_into_mount:
        cmd = ["nixos-install", "--root", str(config.target_root), "--no-root-passwd"]
    else:
        cmd = ["nixos-rebuild", "switch"]
    info(f"Re-applying configuration ({' '.join(cmd)})...")
    result = run(cmd, capture=False)
    if not result.success:
        raise CommandError(cmd, result.returncode)
    ok("Configuration re-applied")


class TunnelStep:
    step_id = "tunnels"
    title = "Cloudflare Tunnels"
    read_only = False

    def is_done(self, ctx: ProvisionContext) -> bool:
        config = ctx.config
        fragment = config.nixos_dir / TUNNEL_FRAGMENT
        if not fragment.is_file():
            return False
        for tunnel in default_tunnels():
            if not (config.secrets_path / credentials_name(tunnel)).is_file():
                return False
            if templates.contains(fragment, tunnel.placeholder):
                return False
        return True

    def plan(self, ctx: ProvisionContext) -> list[str]:
        domain = ctx.config.domain or ctx.state.domain or templates.DOMAIN_PLACEHOLDER
        actions = ["cloudflared tunnel login (unless already logged in)"]
        for tunnel in default_tunnels():
            actions.append(f"cloudflared tunnel create {tunnel.name}")
            actions.append(f"Store credentials in {ctx.config.secrets_path / credentials_name(tunnel)}")
            actions.append(f"cloudflared tunnel route dns {tunnel.name} {tunnel.hostname(domain)}")
        actions.append(f"Replace tunnel ID placeholders in {TUNNEL_FRAGMENT}")
        actions.append("Re-apply the system configuration")
        return actions

    def run(self, ctx: ProvisionContext) -> None:
        config = ctx.config
        domain = resolve_domain(ctx)
        fragment = config.nixos_dir / TUNNEL_FRAGMENT
        if not fragment.is_file():
            raise TemplateSourceError(f"{fragment} missing; run the configuration step first")

        tunnels = default_tunnels()
        ensure_secret_dir(config.secrets_path)
        if not all((config.secrets_path / credentials_name(t)).is_file() for t in tunnels):
            ensure_login(ctx)

        for tunnel in tunnels:
            bootstrap_tunnel(ctx, tunnel)
            for hostname, origin in tunnel.build_ingress(domain).items():
                info(f"  {hostname} -> {origin}")

        count = templates.substitute(fragment, {t.placeholder: t.tunnel_id for t in tunnels})
        info(f"{TUNNEL_FRAGMENT}: {count} tunnel ID substitution(s)")

        for tunnel in tunnels:
            cloudflared.route_dns(tunnel.name, tunnel.hostname(domain))
            ok(f"DNS: {tunnel.hostname(domain)} -> {tunnel.name}")

        reapply_configuration(ctx)
