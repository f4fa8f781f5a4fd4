"""Configuration materialization step."""

from labctl.core import templates
from labctl.core.config import BUNDLED_TEMPLATES, validate_domain
from labctl.errors import OperatorInputRequired, TemplateSourceError
from labctl.provision.pipeline import ProvisionContext
from labctl.utils.output import info, ok, warn


def resolve_domain(ctx: ProvisionContext) -> str:
    """Return the public domain, asking the operator if it is not configured."""
    domain = ctx.config.domain or ctx.state.domain
    while not domain or not validate_domain(domain):
        if domain:
            warn(f"'{domain}' is not a valid domain name")
        if not ctx.prompts.interactive:
            raise OperatorInputRequired("Set LAB_DOMAIN to the public domain name")
        domain = ctx.prompts.read_text("Public domain name (e.g. example.com)").strip().lower()

    ctx.config.domain = domain
    ctx.state.domain = domain
    return domain


class MaterializeStep:
    step_id = "config"
    title = "Configuration"
    read_only = False

    def is_done(self, ctx: ProvisionContext) -> bool:
        nixos_dir = ctx.config.nixos_dir
        if templates.missing_fragments(nixos_dir):
            return False
        return not any(
            templates.contains(nixos_dir / f, templates.DOMAIN_PLACEHOLDER) for f in templates.FRAGMENTS
        )

    def plan(self, ctx: ProvisionContext) -> list[str]:
        config = ctx.config
        source = config.template_source or BUNDLED_TEMPLATES
        actions = [f"Copy {', '.join(templates.FRAGMENTS)} from {source} to {config.nixos_dir}"]
        if config.template_fallback:
            actions.append(f"Fall back to {config.template_fallback} if the source is unreachable")
        domain = config.domain or ctx.state.domain or "<prompted>"
        actions.append(f"Replace {templates.DOMAIN_PLACEHOLDER} with {domain}")
        return actions

    def run(self, ctx: ProvisionContext) -> None:
        config = ctx.config
        domain = resolve_domain(ctx)
        nixos_dir = config.nixos_dir
        nixos_dir.mkdir(parents=True, exist_ok=True)

        self._obtain(ctx)

        replacements = {
            templates.DOMAIN_PLACEHOLDER: domain,
            templates.SECRETS_DIR_PLACEHOLDER: config.secrets_dir,
            templates.ADMIN_USER_PLACEHOLDER: config.admin_user,
        }
        for fragment in templates.FRAGMENTS:
            count = templates.substitute(nixos_dir / fragment, replacements)
            info(f"{fragment}: {count} substitution(s)")
        ok(f"Configuration written to {nixos_dir} for {domain}")

    def _obtain(self, ctx: ProvisionContext) -> None:
        """Fetch templates from the source, then the fallback, then the operator."""
        config = ctx.config
        sources = [config.template_source or BUNDLED_TEMPLATES]
        if config.template_fallback:
            sources.append(config.template_fallback)

        for source in sources:
            try:
                templates.fetch_templates(source, config.nixos_dir)
                info(f"Templates copied from {source}")
                return
            except TemplateSourceError as e:
                warn(str(e))

        warn("No template source available. Place these files manually:")
        for fragment in templates.FRAGMENTS:
            warn(f"  - {config.nixos_dir / fragment}")
        ctx.prompts.acknowledge("Continue when the configuration files are in place")

        missing = templates.missing_fragments(config.nixos_dir)
        if missing:
            raise TemplateSourceError(f"Still missing after manual step: {', '.join(missing)}")
