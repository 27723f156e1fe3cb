"""Pydantic models for parsing the config.yaml configuration file.

The models mirror the structure of config.yaml and handle validation and type
conversion of the YAML configuration data.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, field_validator


class LoginOutcomeSource(str, Enum):
    """Which signal produces ``LoggedIn`` outcomes for sign-in calls."""

    CHANGE_STREAM = "change_stream"
    CALL_RESULT = "call_result"


class AppConfig(BaseModel):
    """Application configuration model."""

    environment: Literal["development", "production", "test"] = Field(
        default="development", description="Application environment"
    )
    name: str = Field(default="authflow", description="Application name used in logs")


class LoggingConfig(BaseModel):
    """Logging configuration model."""

    level: str = Field(default="INFO", description="Logging level")
    format: Literal["json", "plain"] = Field(default="plain", description="Log format")
    file: str | None = Field(default=None, description="Log file path (None = stderr only)")
    max_size_mb: int = Field(default=10, description="Maximum log file size in MB")
    backup_count: int = Field(
        default=5, description="Number of backup log files to keep"
    )


class CoordinatorConfig(BaseModel):
    """Flow coordinator configuration model."""

    login_outcome_source: LoginOutcomeSource = Field(
        default=LoginOutcomeSource.CHANGE_STREAM,
        description="Emit LoggedIn from the provider change stream or from the sign-in call result",
    )
    operation_timeout_seconds: float | None = Field(
        default=None,
        description="Local timeout for a single provider call (None = wait indefinitely)",
    )

    @field_validator("operation_timeout_seconds")
    @classmethod
    def _positive_timeout(cls, value: float | None) -> float | None:
        if value is not None and value <= 0:
            raise ValueError("operation_timeout_seconds must be positive")
        return value


class IdentityToolkitConfig(BaseModel):
    """Identity Toolkit REST provider configuration model."""

    api_key: str = Field(default="", description="Web API key of the identity project")
    base_url: str = Field(
        default="https://identitytoolkit.googleapis.com/v1",
        description="REST base URL (point at an emulator for local development)",
    )
    request_uri: str = Field(
        default="http://localhost",
        description="Request URI reported to the IdP exchange endpoint",
    )
    tenant_id: str | None = Field(default=None, description="Tenant to sign users into")
    timeout_seconds: float = Field(default=10.0, description="HTTP timeout in seconds")


class ConfigData(BaseModel):
    """Top-level configuration loaded from the ``config`` section of config.yaml."""

    app: AppConfig = Field(default_factory=AppConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    coordinator: CoordinatorConfig = Field(default_factory=CoordinatorConfig)
    identity_toolkit: IdentityToolkitConfig = Field(default_factory=IdentityToolkitConfig)
