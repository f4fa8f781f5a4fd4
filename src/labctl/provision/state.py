"""Provisioning state journal (YAML)."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

import yaml


@dataclass
class ProvisioningState:
    """How far the sequence got, persisted between runs.

    Whether a step is done is decided from its artifacts, not from this
    file; the journal records progress, tunnel IDs and failures so an
    operator can see where a previous run stopped.
    """

    current_step: str | None = None
    domain: str | None = None
    completed_steps: list[str] = field(default_factory=list)
    tunnels: dict[str, str] = field(default_factory=dict)
    errors: list[dict[str, str]] = field(default_factory=list)
    updated_at: str | None = None

    def mark_started(self, step_id: str) -> None:
        self.current_step = step_id

    def mark_completed(self, step_id: str) -> None:
        if step_id not in self.completed_steps:
            self.completed_steps.append(step_id)

    def is_completed(self, step_id: str) -> bool:
        return step_id in self.completed_steps

    def record_error(self, step_id: str | None, message: str) -> None:
        self.errors.append({"step": step_id or "", "error": message})


def load_state(path: Path) -> ProvisioningState:
    """Load the journal; a missing or unreadable file yields a fresh state."""
    if not path.exists():
        return ProvisioningState()

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError:
        return ProvisioningState()
    if not isinstance(data, dict):
        return ProvisioningState()

    return ProvisioningState(
        current_step=data.get("current_step"),
        domain=data.get("domain"),
        completed_steps=list(data.get("completed_steps") or []),
        tunnels=dict(data.get("tunnels") or {}),
        errors=list(data.get("errors") or []),
        updated_at=data.get("updated_at"),
    )


def save_state(path: Path, state: ProvisioningState) -> None:
    """Write the journal, creating its directory if needed."""
    state.updated_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
    data = {
        "current_step": state.current_step,
        "domain": state.domain,
        "completed_steps": state.completed_steps,
        "tunnels": state.tunnels,
        "errors": state.errors,
        "updated_at": state.updated_at,
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.dump(data, default_flow_style=False, sort_keys=False))
