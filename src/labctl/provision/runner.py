"""Assembles the provisioning sequence."""

from labctl.core.config import LabConfig
from labctl.provision.disks import DiskStep
from labctl.provision.install import InstallStep
from labctl.provision.materialize import MaterializeStep
from labctl.provision.pipeline import PipelineResult, ProvisionContext, Step, run_pipeline
from labctl.provision.preflight import PreflightStep
from labctl.provision.secret_store import SecretStep
from labctl.provision.state import load_state
from labctl.provision.tunnels import TunnelStep
from labctl.provision.verify import VerifyStep
from labctl.utils.output import info
from labctl.utils.prompts import ConsoleInput, InputProvider, NonInteractiveInput


def build_steps() -> list[Step]:
    return [
        PreflightStep(),
        DiskStep(),
        MaterializeStep(),
        SecretStep(),
        InstallStep(),
        TunnelStep(),
        VerifyStep(),
    ]


def step_ids() -> list[str]:
    return [s.step_id for s in build_steps()]


def default_prompts(config: LabConfig) -> InputProvider:
    """Console prompts, or environment lookups when LAB_NONINTERACTIVE is set."""
    if config.noninteractive:
        return NonInteractiveInput()
    return ConsoleInput()


def provision(
    config: LabConfig,
    prompts: InputProvider | None = None,
    *,
    start_at: str | None = None,
    stop_after: str | None = None,
    force: bool = False,
) -> PipelineResult:
    """Run the whole sequence against ``config``."""
    state = load_state(config.state_file)
    if state.current_step:
        info(f"Previous run stopped at step '{state.current_step}'")

    ctx = ProvisionContext(config=config, prompts=prompts or default_prompts(config), state=state)
    return run_pipeline(ctx, build_steps(), start_at=start_at, stop_after=stop_after, force=force)
