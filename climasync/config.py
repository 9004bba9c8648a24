"""Configuration management for climasync.

This module provides centralized configuration using Pydantic Settings,
read from environment variables or a ``.env`` file.

Environment Profiles:
    - DEVELOPMENT: Verbose logging, human-readable output, tracing off
    - PRODUCTION: JSON logs, tracing enabled
    - TESTING: In-memory local store, minimal logging, fast execution
    - STAGING: Production-like with INFO logging

Example:
    >>> from climasync.config import settings, Environment
    >>> print(settings.request_timeout_seconds)
    10.0
    >>> if settings.is_production:
    ...     print("Running in production mode")
"""

from enum import StrEnum
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ParentType(StrEnum):
    """Kinds of entity that can own comments, reactions and reports."""

    FORUM_POST = "forum_post"
    CLIMATE_ACTION = "climate_action"
    COMMENT = "comment"


class ReactionType(StrEnum):
    """Reaction buttons offered on posts, actions and comments."""

    LIKE = "like"
    LOVE = "love"
    CELEBRATE = "celebrate"
    INSIGHTFUL = "insightful"


class ActionCategory(StrEnum):
    """Climate action categories shown on the community map."""

    TREE_PLANTING = "tree_planting"
    WATER_SAVING = "water_saving"
    ENERGY_CONSERVATION = "energy_conservation"
    TEACHING = "teaching"
    RECYCLING = "recycling"
    TRANSPORTATION = "transportation"
    OTHER = "other"


class TeamRole(StrEnum):
    """Membership roles within a team."""

    ADMIN = "admin"
    MEMBER = "member"


class ReportStatus(StrEnum):
    """Moderation report lifecycle."""

    PENDING = "pending"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class Environment(StrEnum):
    """Runtime environment with specific behavior profiles.

    Attributes:
        DEVELOPMENT: Verbose logging, tracing disabled
        PRODUCTION: JSON logging, tracing enabled
        TESTING: In-memory local store, minimal logging
        STAGING: Pre-production validation environment
    """

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"
    STAGING = "staging"


class Settings(BaseSettings):
    """Application settings with environment variable support.

    Attributes:
        supabase_url: Base URL of the hosted store (REST, RPC and functions)
        supabase_anon_key: Public API key sent with every request
        local_database_path: SQLite path for the in-process store
        feed_page_size: Page size for the public action feed
        forum_page_size: Page size for forum post listings
        leaderboard_size: Number of leaderboard rows
        request_timeout_seconds: Upper bound for any single fetch or write
        poll_interval_seconds: Interval for polled views (environment widgets, leaderboard)
        realtime_poll_seconds: Watermark poll interval for HTTP live channels
        max_read_attempts: Attempts for idempotent reads on transient failures
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment Configuration
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Runtime environment (development, production, testing, staging)",
    )

    # Store Configuration
    supabase_url: str = Field(
        "http://localhost:54321",
        alias="SUPABASE_URL",
        description="Base URL of the hosted relational store",
    )
    supabase_anon_key: Optional[str] = Field(
        None,
        alias="SUPABASE_ANON_KEY",
        description="Public (anon) API key for the hosted store",
    )
    local_database_path: str = Field(
        "climasync.db",
        description="SQLite database path used by the in-process store",
    )

    # Page sizes
    feed_page_size: int = Field(50, ge=1, le=100, description="Public action feed page size")
    forum_page_size: int = Field(20, ge=1, le=100, description="Forum post list page size")
    leaderboard_size: int = Field(100, ge=1, le=500, description="Leaderboard rows")

    # Timing
    request_timeout_seconds: float = Field(
        10.0,
        gt=0,
        le=120,
        description="Timeout applied to every fetch and write issued by a view",
    )
    poll_interval_seconds: float = Field(
        600.0,
        gt=0,
        description="Polling interval for views without push updates",
    )
    realtime_poll_seconds: float = Field(
        2.0,
        gt=0,
        le=60,
        description="Watermark poll interval for HTTP-backed live channels",
    )
    max_read_attempts: int = Field(
        3,
        ge=1,
        le=10,
        description="Attempts for idempotent reads on transient failures",
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional log file path in addition to console",
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (recommended for production)",
    )

    # Observability (OpenTelemetry)
    enable_tracing: bool = Field(
        default=False,
        description="Enable OpenTelemetry distributed tracing",
    )
    otlp_endpoint: Optional[str] = Field(
        default=None,
        description="OpenTelemetry OTLP endpoint for traces (e.g., http://localhost:4317)",
    )

    @field_validator("supabase_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the store URL so paths can be appended directly."""
        return v.rstrip("/")

    @field_validator("supabase_anon_key")
    @classmethod
    def validate_key(cls, v: Optional[str]) -> Optional[str]:
        """Validate API key format when one is configured."""
        if v is not None and len(v) < 10:
            raise ValueError("Store API key must be at least 10 characters")
        return v

    @model_validator(mode="after")
    def apply_environment_profile(self) -> "Settings":
        """Apply environment-specific defaults.

        Profiles:
            - PRODUCTION: INFO logging, JSON logs, tracing enabled
            - DEVELOPMENT: DEBUG logging, human-readable logs, tracing disabled
            - TESTING: In-memory store, ERROR logging, no file logging, no tracing
            - STAGING: INFO logging, JSON logs, tracing enabled
        """
        if self.environment == Environment.PRODUCTION:
            if self.log_level == "DEBUG":
                self.log_level = "INFO"
            self.log_json = True
            self.enable_tracing = True

        elif self.environment == Environment.DEVELOPMENT:
            self.log_level = "DEBUG"
            self.log_json = False
            self.enable_tracing = False

        elif self.environment == Environment.TESTING:
            self.local_database_path = ":memory:"
            self.log_level = "ERROR"
            self.log_file = None
            self.log_json = False
            self.enable_tracing = False

        elif self.environment == Environment.STAGING:
            self.log_level = "INFO"
            self.log_json = True
            self.enable_tracing = True

        return self

    @property
    def rest_url(self) -> str:
        """PostgREST base URL."""
        return f"{self.supabase_url}/rest/v1"

    @property
    def functions_url(self) -> str:
        """Serverless functions base URL."""
        return f"{self.supabase_url}/functions/v1"

    @property
    def local_database_url(self) -> str:
        """SQLAlchemy URL for the in-process store."""
        return f"sqlite:///{self.local_database_path}"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == Environment.TESTING

    def redact_key(self, key: Optional[str] = None) -> str:
        """Redact the API key for logging.

        Args:
            key: Key to redact (defaults to supabase_anon_key)

        Returns:
            Redacted key string
        """
        key = key or self.supabase_anon_key
        if not key:
            return "None"
        return f"{key[:8]}...{key[-4:]}" if len(key) > 12 else "***"


def get_settings() -> Settings:
    """Get a settings instance built from the current environment."""
    return Settings()


# Global settings instance
settings = get_settings()
