# ComplianceLedger - Audit Retention and Compliance Tracking
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Configuration management using Pydantic Settings."""

import logging

from beartype import beartype
from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with immutable configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=None,
        env_file_encoding="utf-8",
        frozen=True,
        validate_default=True,
        extra="forbid",
    )

    # Application
    app_name: str = Field(
        default="Compliance Ledger",
        description="Application name",
        min_length=1,
    )
    api_env: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="API environment",
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Root log level",
    )

    # Storage backend
    store_backend: str = Field(
        default="memory",
        pattern="^(memory|postgres)$",
        description="Record store implementation",
    )
    store_append_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for version-checked writes before giving up",
    )

    # Database
    database_url: str = Field(
        default="postgresql://localhost:5432/compliance_ledger",
        description="PostgreSQL connection URL",
        min_length=1,
    )
    database_pool_min: int = Field(
        default=2,
        ge=1,
        le=20,
        description="Minimum database pool size",
    )
    database_pool_max: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum database pool size",
    )
    database_pool_timeout: float = Field(
        default=10.0,
        ge=1.0,
        le=60.0,
        description="Connection acquisition timeout in seconds",
    )
    database_command_timeout: float = Field(
        default=30.0,
        ge=5.0,
        le=300.0,
        description="Query execution timeout in seconds",
    )
    database_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for read-only queries on connection errors",
    )
    database_retry_delay_seconds: float = Field(
        default=0.5,
        ge=0.0,
        le=10.0,
        description="Base delay for exponential backoff between retries",
    )

    # Redis
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
        min_length=1,
    )
    redis_ttl_seconds: int = Field(
        default=300,
        ge=10,
        le=86400,
        description="TTL for cached compliance records",
    )

    # Compliance policy
    compliance_score_threshold: int = Field(
        default=80,
        ge=0,
        le=100,
        description="Minimum acceptable compliance score",
    )
    expiring_soon_days: int = Field(
        default=30,
        ge=1,
        le=365,
        description="Default horizon for expiring-soon queries",
    )

    # Audit windows
    security_window_days: int = Field(default=30, ge=1, le=3650)
    compliance_window_days: int = Field(default=365, ge=1, le=3650)
    failed_window_days: int = Field(default=30, ge=1, le=3650)
    stats_max_days: int = Field(default=365, ge=1, le=3650)
    export_max_days: int = Field(
        default=90,
        ge=1,
        le=365,
        description="Widest date range allowed for a single export",
    )
    export_max_rows: int = Field(default=10000, ge=1, le=100000)
    query_default_limit: int = Field(default=100, ge=1, le=1000)

    @field_validator("database_pool_max")
    @classmethod
    def validate_pool_sizes(cls: type["Settings"], v: int, info: ValidationInfo) -> int:
        """Ensure pool max is greater than pool min."""
        if "database_pool_min" in info.data:
            min_size = info.data["database_pool_min"]
            if v < min_size:
                raise ValueError(
                    f"database_pool_max ({v}) must be >= database_pool_min ({min_size})"
                )
        return v

    @property
    @beartype
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.api_env == "production"

    @property
    @beartype
    def log_level_value(self) -> int:
        """Numeric log level for the logging module."""
        return logging.getLevelName(self.log_level)


_settings: Settings | None = None


@beartype
def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


@beartype
def clear_settings_cache() -> None:
    """Clear settings cache (for testing)."""
    global _settings
    _settings = None
