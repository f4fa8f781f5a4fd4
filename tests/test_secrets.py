"""Tests for secret collection."""

import os
import stat

import pytest

from labctl.errors import OperatorInputRequired
from labctl.provision.pipeline import ProvisionContext
from labctl.provision.secret_store import (
    SECRET_DIR_MODE,
    SECRET_FILE_MODE,
    SECRETS,
    SecretStep,
    restrict_permissions,
    write_secret_file,
)
from labctl.utils.prompts import NonInteractiveInput, read_confirmed_secret


def _mode(path) -> int:
    return stat.S_IMODE(path.stat().st_mode)


ANSWERS = [
    "cf-token",  # cloudflare-token
    "admin-pw",
    "admin-pw",  # nextcloud-admin-pass
    "db-pw",
    "db-pw",  # nextcloud-db-pass
]


class TestReadConfirmedSecret:
    """Tests for the confirm loop."""

    def test_empty_value_asks_again(self, make_ctx):
        prompts = make_ctx(["", "value"]).prompts
        assert read_confirmed_secret(prompts, "x", "X", confirm=False) == "value"
        assert prompts.prompts == ["X", "X"]

    def test_mismatch_asks_again(self, make_ctx):
        prompts = make_ctx(["one", "two", "three", "three"]).prompts
        assert read_confirmed_secret(prompts, "x", "X", confirm=True) == "three"
        assert prompts.prompts == ["X", "X (again)", "X", "X (again)"]

    def test_noninteractive_reads_environment(self):
        provider = NonInteractiveInput({"LAB_SECRET_NEXTCLOUD_DB_PASS": "db"})
        assert read_confirmed_secret(provider, "nextcloud-db-pass", "DB", confirm=True) == "db"

    def test_noninteractive_missing_value(self):
        with pytest.raises(OperatorInputRequired, match="LAB_SECRET_CLOUDFLARE_TOKEN"):
            read_confirmed_secret(NonInteractiveInput({}), "cloudflare-token", "Token", confirm=False)


class TestSecretStep:
    """Tests for the secret collection step."""

    def test_stores_every_secret_restricted(self, make_ctx):
        ctx = make_ctx(list(ANSWERS))
        SecretStep().run(ctx)

        directory = ctx.config.secrets_path
        assert _mode(directory) == SECRET_DIR_MODE
        for spec in SECRETS:
            path = directory / spec.name
            assert path.read_text()
            assert _mode(path) == SECRET_FILE_MODE
        assert (directory / "cloudflare-token").read_text() == "cf-token"
        assert (directory / "nextcloud-admin-pass").read_text() == "admin-pw"
        assert (directory / "nextcloud-db-pass").read_text() == "db-pw"

    def test_generated_secret_needs_no_prompt(self, make_ctx):
        ctx = make_ctx(list(ANSWERS))
        SecretStep().run(ctx)

        assert len(ctx.prompts.prompts) == len(ANSWERS)
        assert len((ctx.config.secrets_path / "open-webui-secret-key").read_text()) >= 32

    def test_rerun_keeps_existing_values(self, make_ctx, lab_config):
        SecretStep().run(make_ctx(list(ANSWERS)))
        step = SecretStep()
        ctx = make_ctx([])

        assert step.is_done(ctx) is True
        step.run(ctx)

        assert ctx.prompts.prompts == []
        assert (lab_config.secrets_path / "cloudflare-token").read_text() == "cf-token"

    def test_loose_permissions_not_done(self, make_ctx, lab_config):
        SecretStep().run(make_ctx(list(ANSWERS)))
        os.chmod(lab_config.secrets_path / "nextcloud-db-pass", 0o644)

        assert SecretStep().is_done(make_ctx()) is False

    def test_noninteractive_run(self, lab_config):
        environ = {
            "LAB_SECRET_CLOUDFLARE_TOKEN": "cf",
            "LAB_SECRET_NEXTCLOUD_ADMIN_PASS": "admin",
            "LAB_SECRET_NEXTCLOUD_DB_PASS": "db",
        }
        ctx = ProvisionContext(config=lab_config, prompts=NonInteractiveInput(environ))
        SecretStep().run(ctx)
        assert (lab_config.secrets_path / "nextcloud-admin-pass").read_text() == "admin"

    def test_plan_does_not_prompt(self, make_ctx):
        ctx = make_ctx()
        actions = SecretStep().plan(ctx)
        assert any("Cloudflare API token" in a for a in actions)
        assert ctx.prompts.prompts == []


class TestFileHelpers:
    """Tests for restricted file helpers."""

    def test_write_secret_file_mode(self, tmp_path):
        path = tmp_path / "s"
        write_secret_file(path, "x")
        assert _mode(path) == SECRET_FILE_MODE

    def test_restrict_permissions(self, tmp_path):
        for name in ("a", "b"):
            (tmp_path / name).write_text(name)
            os.chmod(tmp_path / name, 0o644)
        (tmp_path / "sub").mkdir()

        assert restrict_permissions(tmp_path) == 2
        assert _mode(tmp_path / "a") == SECRET_FILE_MODE
