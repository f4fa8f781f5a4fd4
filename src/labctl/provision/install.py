"""Operating system installation step."""

from labctl.errors import CommandError
from labctl.provision.pipeline import ProvisionContext
from labctl.utils.output import info, ok, warn
from labctl.utils.process import run


class InstallStep:
    step_id = "install"
    title = "NixOS Installation"
    read_only = False

    def is_done(self, ctx: ProvisionContext) -> bool:
        # nixos-install links the system profile as its last action
        return ctx.config.in_target("/nix/var/nix/profiles/system").is_symlink()

    def plan(self, ctx: ProvisionContext) -> list[str]:
        config = ctx.config
        root = str(config.target_root)
        actions = []
        if not (config.nixos_dir / "hardware-configuration.nix").exists():
            actions.append(f"nixos-generate-config --root {root}")
        actions.append(f"nixos-install --root {root} --no-root-passwd")
        actions.append(f"Set password for {config.admin_user}")
        return actions

    def run(self, ctx: ProvisionContext) -> None:
        config = ctx.config
        root = str(config.target_root)

        hardware = config.nixos_dir / "hardware-configuration.nix"
        if hardware.exists():
            info("hardware-configuration.nix already present")
        else:
            info("Generating hardware configuration...")
            # Leaves an existing configuration.nix untouched
            run(["nixos-generate-config", "--root", root], check=True)

        info("Installing NixOS (this takes a while)...")
        result = run(["nixos-install", "--root", root, "--no-root-passwd"], capture=False)
        if not result.success:
            raise CommandError(["nixos-install", "--root", root], result.returncode)
        ok("NixOS installed")

        self._set_password(ctx)

    def _set_password(self, ctx: ProvisionContext) -> None:
        user = ctx.config.admin_user
        if not ctx.prompts.interactive:
            warn(f"Non-interactive mode: set a password for '{user}' after first boot")
            return
        info(f"Set the login password for '{user}':")
        result = run(
            ["nixos-enter", "--root", str(ctx.config.target_root), "-c", f"passwd {user}"],
            capture=False,
        )
        if result.success:
            ok(f"Password set for {user}")
        else:
            warn(f"Could not set password for {user}; run 'passwd {user}' after first boot")
