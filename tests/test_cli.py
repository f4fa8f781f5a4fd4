"""Tests for the command line interface."""

import subprocess
from unittest.mock import patch

import httpx
import pytest
from typer.testing import CliRunner

from labctl.cli import app
from labctl.core.environment import OSType
from labctl.errors import ReadinessTimeout
from labctl.provision.verify import ServiceCheck
from labctl.utils.process import CommandResult

runner = CliRunner()

DESTRUCTIVE = {"parted", "mkfs.fat", "mkfs.ext4", "nixos-install", "nixos-generate-config", "cloudflared"}


@pytest.fixture
def env(tmp_path):
    return {
        "LAB_DRY_RUN": "1",
        "LAB_NONINTERACTIVE": "1",
        "LAB_DOMAIN": "example.com",
        "LAB_TARGET_ROOT": str(tmp_path / "target"),
        "LAB_STATE_FILE": str(tmp_path / "state.yaml"),
    }


@pytest.fixture
def recorded_commands():
    """Replace subprocess.run; record every command line."""
    calls: list[list[str]] = []

    def fake_run(cmd, **kwargs):
        calls.append(list(cmd))
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    with patch("labctl.utils.process.subprocess.run", side_effect=fake_run), patch(
        "labctl.core.ollama.httpx.get", side_effect=httpx.ConnectError("refused")
    ):
        yield calls


class TestApp:
    """Tests for top-level options."""

    def test_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "ai" in result.output
        assert "tunnel" in result.output

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert result.output.startswith("labctl ")

    def test_invalid_setting(self, env):
        env["LAB_LABEL_TIMEOUT"] = "soon"
        result = runner.invoke(app, [], env=env)
        assert result.exit_code == 2

    def test_unknown_step(self, env, healthy_host, recorded_commands):
        result = runner.invoke(app, ["--start-at", "nope"], env=env)
        assert result.exit_code == 2


class TestDryRun:
    """Tests for a dry run of the whole sequence."""

    def test_nothing_destructive_runs(self, env, tmp_path, healthy_host, recorded_commands):
        result = runner.invoke(app, [], env=env)

        assert result.exit_code == 0, result.output
        assert "Dry run complete" in result.output
        assert "[dry-run] parted" in result.output
        assert not DESTRUCTIVE & {cmd[0] for cmd in recorded_commands}
        assert not (tmp_path / "target").exists()
        assert not (tmp_path / "state.yaml").exists()

    def test_failed_preflight_stops_dry_run(self, env, healthy_host, recorded_commands):
        with patch("labctl.provision.preflight.detect_os_type", return_value=OSType.LINUX):
            result = runner.invoke(app, [], env=env)

        assert result.exit_code == 1
        assert "NixOS" in result.output
        assert "[dry-run]" not in result.output

    def test_stop_after(self, env, healthy_host, recorded_commands):
        result = runner.invoke(app, ["--stop-after", "disks"], env=env)
        assert result.exit_code == 0
        assert "Stopping after disks" in result.output
        assert "Secrets" not in result.output


class TestHelpers:
    """Tests for post-install helper commands."""

    @patch("labctl.commands.service.collect_checks")
    def test_status_always_succeeds(self, mock_checks, env):
        mock_checks.return_value = [ServiceCheck("podman", False, "down")]
        result = runner.invoke(app, ["status"], env=env)
        assert result.exit_code == 0
        assert "FAIL" in result.output

    def test_restart_unknown_service(self, env):
        result = runner.invoke(app, ["restart", "nope"], env=env)
        assert result.exit_code == 1
        assert "Unknown service" in result.output

    @patch("labctl.core.systemd.run_sudo", return_value=CommandResult(0, "", ""))
    def test_restart_single_service(self, mock_sudo, env):
        result = runner.invoke(app, ["restart", "ollama"], env=env)
        assert result.exit_code == 0
        mock_sudo.assert_called_once_with(["systemctl", "restart", "podman-ollama.service"])

    def test_backup_unknown(self, env):
        result = runner.invoke(app, ["backup", "run", "photos"], env=env)
        assert result.exit_code == 1

    @patch("labctl.core.systemd.run_sudo", return_value=CommandResult(0, "", ""))
    def test_backup_run(self, mock_sudo, env):
        result = runner.invoke(app, ["backup", "run", "nextcloud-backup"], env=env)
        assert result.exit_code == 0
        mock_sudo.assert_called_once_with(["systemctl", "start", "nextcloud-backup.service"])

    def test_tunnel_test_needs_domain(self, env):
        env["LAB_DOMAIN"] = ""
        result = runner.invoke(app, ["tunnel", "test"], env=env)
        assert result.exit_code == 1

    @patch("labctl.commands.tunnel.probe", return_value=None)
    def test_tunnel_test_is_diagnostic(self, mock_probe, env):
        result = runner.invoke(app, ["tunnel", "test"], env=env)
        assert result.exit_code == 0
        assert mock_probe.call_count == 4


class TestAiCommands:
    """Tests for the model commands."""

    @patch("labctl.commands.ai.OllamaClient")
    def test_pull_defaults(self, mock_client_cls):
        client = mock_client_cls.return_value
        client.pull_models.return_value = {"llama2": "success", "codellama": "success"}

        result = runner.invoke(app, ["ai", "pull"])

        assert result.exit_code == 0
        client.pull_models.assert_called_once_with(["llama2", "codellama"])

    @patch("labctl.commands.ai.OllamaClient")
    def test_pull_server_not_ready(self, mock_client_cls):
        mock_client_cls.return_value.wait_ready.side_effect = ReadinessTimeout("Timed out")
        result = runner.invoke(app, ["ai", "pull", "--wait", "1"])
        assert result.exit_code == 1
        mock_client_cls.return_value.pull_models.assert_not_called()

    @patch("labctl.commands.ai.OllamaClient")
    def test_pull_partial_failure(self, mock_client_cls):
        mock_client_cls.return_value.pull_models.return_value = {
            "mistral": "success",
            "nope": httpx.HTTPStatusError(
                "not found",
                request=httpx.Request("POST", "http://localhost"),
                response=httpx.Response(404),
            ),
        }
        result = runner.invoke(app, ["ai", "pull", "mistral", "nope"])
        assert result.exit_code == 1

    def test_start_unknown(self):
        result = runner.invoke(app, ["ai", "start", "nope"])
        assert result.exit_code == 1
