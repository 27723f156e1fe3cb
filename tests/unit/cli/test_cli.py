"""Tests for the authflow CLI."""

import json

import pytest
from typer.testing import CliRunner

from authflow.cli import app
from authflow.runtime.config.config_data import ConfigData

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr("authflow.cli.auth_commands.configure_logging", lambda: None)


class TestSignInCommand:
    def test_in_memory_sign_in_succeeds(self, provider_id, identity_token, nonce):
        result = runner.invoke(
            app,
            ["sign-in", "-p", provider_id, "-t", identity_token, "-n", nonce, "--in-memory"],
        )

        assert result.exit_code == 0, result.output
        assert "Signed in" in result.output
        assert provider_id in result.output

    def test_token_from_environment(self, monkeypatch, provider_id, identity_token, nonce):
        monkeypatch.setenv("AUTHFLOW_IDENTITY_TOKEN", identity_token)

        result = runner.invoke(app, ["sign-in", "-p", provider_id, "-n", nonce, "--in-memory"])

        assert result.exit_code == 0, result.output

    def test_empty_nonce_fails(self, provider_id, identity_token):
        result = runner.invoke(
            app, ["sign-in", "-p", provider_id, "-t", identity_token, "-n", "", "--in-memory"]
        )

        assert result.exit_code == 1
        assert "invalid_credential" in result.output

    def test_missing_api_key(self, provider_id, identity_token, nonce):
        result = runner.invoke(app, ["sign-in", "-p", provider_id, "-t", identity_token, "-n", nonce])

        assert result.exit_code == 2
        assert "api_key" in result.output


class TestConfigCommand:
    def test_api_key_is_masked(self, isolated_config: ConfigData):
        isolated_config.identity_toolkit.api_key = "super-secret"

        result = runner.invoke(app, ["config"])

        assert result.exit_code == 0, result.output
        assert "super-secret" not in result.output
        assert json.loads(result.output)["identity_toolkit"]["api_key"] == "***"

    def test_reveal_shows_api_key(self, isolated_config: ConfigData):
        isolated_config.identity_toolkit.api_key = "super-secret"

        result = runner.invoke(app, ["config", "--reveal"])

        assert json.loads(result.output)["identity_toolkit"]["api_key"] == "super-secret"
