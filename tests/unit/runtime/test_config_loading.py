"""Tests for configuration loading and context overrides."""

from pathlib import Path

import pytest

from authflow.runtime.config.config_data import (
    ConfigData,
    CoordinatorConfig,
    LoginOutcomeSource,
)
from authflow.runtime.config.config_template import (
    environment_overrides,
    load_templated_yaml,
    substitute_env_vars,
)
from authflow.runtime.context import get_config, load_default_config, merge_configs, with_context
from authflow.runtime.settings import EnvironmentVariables

CONFIG_YAML = """
config:
  app:
    environment: test
  logging:
    level: ${LOG_LEVEL:-DEBUG}
  coordinator:
    login_outcome_source: call_result
    operation_timeout_seconds: 5
  identity_toolkit:
    api_key: ${IDENTITY_API_KEY:?set the identity toolkit API key}
"""


class TestSubstitution:
    def test_default_value(self):
        assert substitute_env_vars("${MISSING:-fallback}", {}) == "fallback"

    def test_required_variable(self):
        assert substitute_env_vars("key=${API_KEY}", {"API_KEY": "abc"}) == "key=abc"
        with pytest.raises(ValueError, match="API_KEY"):
            substitute_env_vars("${API_KEY}", {})

    def test_custom_error_message(self):
        with pytest.raises(ValueError, match="needed for sign-in"):
            substitute_env_vars("${API_KEY:?needed for sign-in}", {})

    def test_environment_prefix_overrides(self):
        merged = environment_overrides(
            "production", {"API_KEY": "dev", "PRODUCTION_API_KEY": "prod"}
        )

        assert merged["API_KEY"] == "prod"


class TestLoadTemplatedYaml:
    def test_loads_and_validates(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("IDENTITY_API_KEY", "secret")
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text(CONFIG_YAML)

        config = load_templated_yaml(path, env_mode="test")

        assert config.logging.level == "DEBUG"
        assert config.coordinator.login_outcome_source is LoginOutcomeSource.CALL_RESULT
        assert config.coordinator.operation_timeout_seconds == 5
        assert config.identity_toolkit.api_key == "secret"

    def test_missing_required_variable(self, tmp_path: Path, monkeypatch):
        monkeypatch.delenv("IDENTITY_API_KEY", raising=False)
        monkeypatch.delenv("TEST_IDENTITY_API_KEY", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text(CONFIG_YAML)

        with pytest.raises(ValueError, match="IDENTITY_API_KEY"):
            load_templated_yaml(path, env_mode="test")

    def test_invalid_values_are_rejected(self, tmp_path: Path):
        path = tmp_path / "config.yaml"
        path.write_text("config:\n  coordinator:\n    operation_timeout_seconds: -1\n")

        with pytest.raises(ValueError, match="Invalid configuration"):
            load_templated_yaml(path)

    def test_non_mapping_document(self, tmp_path: Path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ValueError):
            load_templated_yaml(path)


class TestDefaultConfig:
    def test_missing_file_uses_defaults(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("AUTHFLOW_CONFIG", str(tmp_path / "absent.yaml"))
        monkeypatch.setenv("APP_ENVIRONMENT", "production")
        monkeypatch.setenv("LOG_LEVEL", "warning")

        config = load_default_config(EnvironmentVariables())

        assert config.app.environment == "production"
        assert config.logging.level == "WARNING"
        assert config.coordinator == CoordinatorConfig()


class TestContext:
    def test_with_context_merges_explicit_fields(self):
        override = ConfigData()
        override.coordinator.operation_timeout_seconds = 2.5

        with with_context(override):
            config = get_config()
            assert config.coordinator.operation_timeout_seconds == 2.5
            assert config.app.environment == "test"

        assert get_config().coordinator.operation_timeout_seconds is None

    def test_with_context_none_is_a_no_op(self):
        before = get_config()
        with with_context(None):
            assert get_config() is before

    def test_with_context_rejects_other_types(self):
        with pytest.raises(ValueError):
            with with_context({"coordinator": {}}):  # type: ignore[arg-type]
                pass

    def test_merge_configs_keeps_unset_values(self):
        base = ConfigData()
        base.identity_toolkit.api_key = "base-key"
        override = ConfigData(coordinator=CoordinatorConfig(login_outcome_source="call_result"))

        merged = merge_configs(base, override)

        assert merged.identity_toolkit.api_key == "base-key"
        assert merged.coordinator.login_outcome_source is LoginOutcomeSource.CALL_RESULT
