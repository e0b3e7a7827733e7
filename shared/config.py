"""
Shared configuration management for the JIT Access core.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="JITACCESS_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")


class JitAccessConfig(BaseConfig):
    """Settings for entitlement discovery and activation requests."""

    # Policy discovery
    resource_scope: str = Field(default="organizations/0", description="Scope for effective policy lookups")
    directory_api_url: str = Field(default="https://cloudidentity.googleapis.com")
    asset_inventory_api_url: str = Field(default="https://cloudasset.googleapis.com")
    http_timeout_seconds: float = Field(default=10.0)
    api_access_token: Optional[str] = Field(default=None)

    # Activation tokens
    token_signing_key: str = Field(default="change-me")
    token_issuer: str = Field(default="jitaccess")
    token_validity_minutes: int = Field(default=60, ge=1)

    # Activation requests
    justification_pattern: str = Field(default=".*")
    justification_hint: str = Field(default="Bug or case number")
    min_activation_duration_minutes: int = Field(default=5, ge=1)
    max_activation_duration_minutes: int = Field(default=120, ge=1)
    max_reviewers: int = Field(default=10, ge=1)


def get_config() -> JitAccessConfig:
    """Load configuration from the environment."""
    return JitAccessConfig()
