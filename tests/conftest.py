"""Shared fixtures."""

from pathlib import Path
from unittest.mock import patch

import pytest

from labctl.core.config import LabConfig
from labctl.core.environment import OSType
from labctl.provision.pipeline import ProvisionContext
from labctl.utils.prompts import ScriptedInput


@pytest.fixture
def lab_config(tmp_path: Path) -> LabConfig:
    """Configuration whose every path lives under tmp_path."""
    dev = tmp_path / "dev"
    dev.mkdir()
    return LabConfig(
        boot_device=str(dev / "sdb"),
        models_device=str(dev / "sda"),
        cloud_device=str(dev / "nvme0n1"),
        domain="example.com",
        target_root=tmp_path / "target",
        state_file=tmp_path / "state" / "state.yaml",
        label_timeout=0.0,
    )


@pytest.fixture
def make_ctx(lab_config: LabConfig):
    """Build a ProvisionContext with scripted operator answers."""

    def _make(answers: list[str] | None = None) -> ProvisionContext:
        return ProvisionContext(config=lab_config, prompts=ScriptedInput(answers or []))

    return _make


@pytest.fixture
def healthy_host():
    """Make every preflight check pass."""
    with patch("labctl.provision.preflight.detect_os_type", return_value=OSType.NIXOS), patch(
        "labctl.provision.preflight.is_root", return_value=True
    ), patch("labctl.provision.preflight.command_exists", return_value=True), patch(
        "labctl.provision.preflight.check_reachable", return_value=True
    ), patch("labctl.provision.preflight.is_block_device", return_value=True):
        yield
