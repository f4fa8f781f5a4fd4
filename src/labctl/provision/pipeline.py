"""Ordered, resumable execution of provisioning steps."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

from rich.markup import escape

from labctl.core.config import LabConfig
from labctl.errors import LabError
from labctl.provision.state import ProvisioningState, save_state
from labctl.utils.output import error, info, ok, section
from labctl.utils.prompts import InputProvider


@dataclass
class ProvisionContext:
    """Everything a step may use; passed by reference to each step."""

    config: LabConfig
    prompts: InputProvider
    state: ProvisioningState = field(default_factory=ProvisioningState)


class Step(Protocol):
    """A single idempotent provisioning step."""

    step_id: str
    title: str
    # Read-only steps run even in dry-run mode
    read_only: bool

    def is_done(self, ctx: ProvisionContext) -> bool:
        """True if the step's target artifact already exists."""
        ...

    def plan(self, ctx: ProvisionContext) -> list[str]:
        """Describe the actions ``run`` would take."""
        ...

    def run(self, ctx: ProvisionContext) -> None:
        ...


@dataclass(frozen=True)
class PipelineResult:
    ran_steps: list[str]
    skipped_steps: list[str]
    planned_steps: list[str]


def run_pipeline(
    ctx: ProvisionContext,
    steps: Sequence[Step],
    *,
    start_at: str | None = None,
    stop_after: str | None = None,
    force: bool = False,
) -> PipelineResult:
    """Run steps in order with resume/idempotency semantics.

    Read-only steps ahead of ``start_at`` still run, so preflight checks
    are never bypassed by resuming at a later step.
    A step whose artifact already exists is skipped unless ``force`` is set.
    In dry-run mode only read-only steps execute; the others print their
    plan. The first LabError stops the sequence; completed steps are left
    in place.
    """
    ids = [s.step_id for s in steps]
    for name, value in (("start-at", start_at), ("stop-after", stop_after)):
        if value is not None and value not in ids:
            raise ValueError(f"Unknown step for {name}: {value} (choose from {', '.join(ids)})")

    ran: list[str] = []
    skipped: list[str] = []
    planned: list[str] = []
    config = ctx.config
    started = start_at is None

    for step in steps:
        if not started:
            if step.step_id == start_at:
                started = True
            elif not step.read_only:
                # Checks before the start point still gate the steps after it
                continue

        section(step.title)
        ctx.state.mark_started(step.step_id)

        try:
            if config.dry_run and not step.read_only:
                for action in step.plan(ctx):
                    info(f"\\[dry-run] {escape(action)}")
                planned.append(step.step_id)
            elif not force and step.is_done(ctx):
                ok(f"{step.title}: already done, skipping")
                ctx.state.mark_completed(step.step_id)
                skipped.append(step.step_id)
            else:
                step.run(ctx)
                ctx.state.mark_completed(step.step_id)
                ran.append(step.step_id)
        except LabError as e:
            error(f"{step.title} failed: {e}")
            ctx.state.record_error(step.step_id, str(e))
            _persist(ctx)
            raise

        _persist(ctx)

        if stop_after is not None and step.step_id == stop_after:
            info(f"Stopping after {stop_after}")
            break

    ctx.state.current_step = None
    _persist(ctx)
    return PipelineResult(ran_steps=ran, skipped_steps=skipped, planned_steps=planned)


def _persist(ctx: ProvisionContext) -> None:
    if ctx.config.dry_run:
        return
    try:
        save_state(ctx.config.state_file, ctx.state)
    except OSError as e:
        error(f"Could not write state file {ctx.config.state_file}: {e}")
