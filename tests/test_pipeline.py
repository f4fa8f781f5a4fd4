"""Tests for step ordering, resume and the state journal."""

from unittest.mock import patch

import pytest
import yaml

from labctl.errors import CommandError
from labctl.provision.pipeline import run_pipeline
from labctl.provision.runner import build_steps, provision, step_ids
from labctl.provision.state import ProvisioningState, load_state, save_state
from labctl.utils.prompts import ScriptedInput


class FakeStep:
    """Step that records how it was driven."""

    def __init__(self, step_id, *, done=False, read_only=False, fail=False):
        self.step_id = step_id
        self.title = step_id.title()
        self.read_only = read_only
        self.done = done
        self.fail = fail
        self.runs = 0
        self.plans = 0

    def is_done(self, ctx):
        return self.done

    def plan(self, ctx):
        self.plans += 1
        return [f"do {self.step_id}"]

    def run(self, ctx):
        self.runs += 1
        if self.fail:
            raise CommandError(["false"], 1, "boom")
        self.done = True


class TestRunPipeline:
    """Tests for run_pipeline."""

    def test_runs_in_order(self, make_ctx):
        steps = [FakeStep("a"), FakeStep("b"), FakeStep("c")]
        result = run_pipeline(make_ctx(), steps)

        assert result.ran_steps == ["a", "b", "c"]
        assert all(s.runs == 1 for s in steps)

    def test_done_steps_skipped(self, make_ctx):
        steps = [FakeStep("a", done=True), FakeStep("b")]
        result = run_pipeline(make_ctx(), steps)

        assert result.skipped_steps == ["a"]
        assert result.ran_steps == ["b"]
        assert steps[0].runs == 0

    def test_force_reruns_done_steps(self, make_ctx):
        steps = [FakeStep("a", done=True)]
        result = run_pipeline(make_ctx(), steps, force=True)
        assert result.ran_steps == ["a"]

    def test_second_run_is_noop(self, make_ctx):
        steps = [FakeStep("a"), FakeStep("b")]
        run_pipeline(make_ctx(), steps)
        result = run_pipeline(make_ctx(), steps)

        assert result.ran_steps == []
        assert result.skipped_steps == ["a", "b"]

    def test_start_at_and_stop_after(self, make_ctx):
        steps = [FakeStep(i) for i in ("a", "b", "c", "d")]
        result = run_pipeline(make_ctx(), steps, start_at="b", stop_after="c")
        assert result.ran_steps == ["b", "c"]

    def test_start_at_keeps_earlier_checks(self, make_ctx):
        check = FakeStep("check", read_only=True)
        steps = [check, FakeStep("a"), FakeStep("b")]
        result = run_pipeline(make_ctx(), steps, start_at="b")

        assert check.runs == 1
        assert steps[1].runs == 0
        assert result.ran_steps == ["check", "b"]

    def test_failed_check_blocks_later_start(self, make_ctx):
        check = FakeStep("check", read_only=True, fail=True)
        target = FakeStep("b")
        with pytest.raises(CommandError):
            run_pipeline(make_ctx(), [check, FakeStep("a"), target], start_at="b")
        assert target.runs == 0

    def test_unknown_step(self, make_ctx):
        with pytest.raises(ValueError, match="nope"):
            run_pipeline(make_ctx(), [FakeStep("a")], start_at="nope")

    def test_failure_stops_sequence_and_is_journaled(self, make_ctx, lab_config):
        steps = [FakeStep("a"), FakeStep("b", fail=True), FakeStep("c")]
        ctx = make_ctx()

        with pytest.raises(CommandError):
            run_pipeline(ctx, steps)

        assert steps[2].runs == 0
        state = load_state(lab_config.state_file)
        assert state.completed_steps == ["a"]
        assert state.current_step == "b"
        assert state.errors[0]["step"] == "b"
        assert "boom" in state.errors[0]["error"]

    def test_dry_run_plans_mutating_steps(self, make_ctx, lab_config):
        lab_config.dry_run = True
        check = FakeStep("check", read_only=True)
        mutate = FakeStep("mutate")
        result = run_pipeline(make_ctx(), [check, mutate])

        assert check.runs == 1
        assert mutate.runs == 0
        assert mutate.plans == 1
        assert result.planned_steps == ["mutate"]
        assert not lab_config.state_file.exists()


class TestState:
    """Tests for the YAML journal."""

    def test_missing_file(self, tmp_path):
        assert load_state(tmp_path / "none.yaml") == ProvisioningState()

    def test_round_trip(self, tmp_path):
        path = tmp_path / "sub" / "state.yaml"
        state = ProvisioningState(domain="example.com", tunnels={"ai-tunnel": "id"})
        state.mark_completed("disks")
        save_state(path, state)

        loaded = load_state(path)
        assert loaded.domain == "example.com"
        assert loaded.completed_steps == ["disks"]
        assert loaded.tunnels == {"ai-tunnel": "id"}
        assert loaded.updated_at is not None

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "state.yaml"
        path.write_text("{unclosed: [")
        assert load_state(path) == ProvisioningState()

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "state.yaml"
        path.write_text(yaml.dump(["a", "b"]))
        assert load_state(path) == ProvisioningState()

    def test_mark_completed_once(self):
        state = ProvisioningState()
        state.mark_completed("a")
        state.mark_completed("a")
        assert state.completed_steps == ["a"]
        assert state.is_completed("a")


@patch("labctl.provision.preflight.collect_failures", return_value=[])
def test_preflight_runs_when_starting_at_disks(mock_failures, lab_config):
    lab_config.dry_run = True
    result = provision(lab_config, ScriptedInput([]), start_at="disks", stop_after="disks")

    mock_failures.assert_called_once_with(lab_config)
    assert result.ran_steps == ["preflight"]
    assert result.planned_steps == ["disks"]


def test_sequence_order():
    assert step_ids() == ["preflight", "disks", "config", "secrets", "install", "tunnels", "verify"]
    assert [s.step_id for s in build_steps()] == step_ids()
