"""Configuration template substitution utilities."""

import os
import re
from collections.abc import Mapping
from pathlib import Path

import yaml
from loguru import logger
from pydantic import ValidationError

from authflow.runtime.config.config_data import ConfigData

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")


def environment_overrides(env_mode: str, environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return environment variables with the ``<ENV_MODE>_`` prefix applied.

    ``PRODUCTION_IDENTITY_API_KEY`` becomes ``IDENTITY_API_KEY`` when running in
    production, shadowing any unprefixed value.
    """
    environ = os.environ if environ is None else environ
    prefix = f"{env_mode.upper()}_"
    merged = dict(environ)
    for var_name, var_value in environ.items():
        if var_name.startswith(prefix):
            merged[var_name[len(prefix):]] = var_value
            logger.debug(f"Using {var_name} for {var_name[len(prefix):]}")
    return merged


def substitute_env_vars(text: str, environ: Mapping[str, str] | None = None) -> str:
    """
    Substitute environment variable placeholders in text.

    Supports formats:
    - ${VAR_NAME} - required variable (raises error if missing)
    - ${VAR_NAME:-default} - optional with default value
    - ${VAR_NAME:?error_message} - required with custom error message
    """
    environ = os.environ if environ is None else environ

    def replacer(match: re.Match[str]) -> str:
        var_expr = match.group(1)

        if ":-" in var_expr:
            var_name, default = var_expr.split(":-", 1)
            return environ.get(var_name, default)

        if ":?" in var_expr:
            var_name, error_msg = var_expr.split(":?", 1)
            value = environ.get(var_name)
            if value is None:
                raise ValueError(f"Required environment variable {var_name}: {error_msg}")
            return value

        value = environ.get(var_expr)
        if value is None:
            raise ValueError(f"Required environment variable {var_expr} not set")
        return value

    return _PLACEHOLDER.sub(replacer, text)


def load_templated_yaml(file_path: Path, env_mode: str = "development") -> ConfigData:
    """
    Load a YAML file with environment variable substitution.

    Args:
        file_path: Path to the YAML file
        env_mode: Environment whose prefixed variables override unprefixed ones

    Returns:
        Validated configuration

    Raises:
        ValueError: If required environment variables are missing or the file is invalid
        FileNotFoundError: If the YAML file doesn't exist
    """
    content = file_path.read_text(encoding="utf-8")
    logger.info(f"Loading configuration for environment: {env_mode}")

    substituted = substitute_env_vars(content, environment_overrides(env_mode))

    try:
        loaded = yaml.safe_load(substituted)
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML: {e}") from e
    if not isinstance(loaded, dict):
        raise ValueError(f"Expected a mapping at the top of {file_path}")

    try:
        config = ConfigData(**(loaded.get("config") or {}))
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}") from e

    if config.app.environment != env_mode:
        logger.warning(
            f"config.yaml declares environment '{config.app.environment}' "
            f"but APP_ENVIRONMENT is '{env_mode}'"
        )

    if not config.identity_toolkit.api_key:
        logger.debug("No identity toolkit API key configured")

    return config
