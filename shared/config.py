"""
Shared configuration management for the permissions engine.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PERMISSIONS_",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    log_format: str = Field(default="json")

    # External services
    postgres_dsn: str = Field(default="postgres://localhost:5432/permissions")
    kafka_bootstrap: str = Field(default="localhost:9092")


class PermissionsConfig(BaseConfig):
    """Permissions engine configuration."""

    service_name: str = "permissions"

    # Audit delivery
    audit_enabled: bool = Field(default=True)
    audit_async: bool = Field(default=True)
    audit_topic: str = Field(default="permissions.audit.v1")
    kafka_publish_timeout: float = Field(default=10.0)
    audit_breaker_failure_threshold: int = Field(default=5)
    audit_breaker_recovery_timeout: float = Field(default=30.0)

    # Catalog
    seed_catalog: bool = Field(default=True)

    # Relationship traversal
    hierarchy_max_depth: int = Field(default=10, ge=1)

    # Storage pool
    postgres_min_pool: int = Field(default=2)
    postgres_max_pool: int = Field(default=10)

    # Metrics
    metrics_port: Optional[int] = Field(default=None)


def get_config(**overrides) -> PermissionsConfig:
    """Get configuration for the permissions engine."""
    return PermissionsConfig(**overrides)
