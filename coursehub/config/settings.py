"""Application settings using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="coursehub", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Environment name"
    )
    debug: bool = Field(default=True, description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")

    # Authentication (identity provider tokens)
    auth_secret_key: str = Field(
        default="dev-jwt-secret-key-change-in-production-32chars!",
        description="JWT signing key (min 32 chars)",
    )
    auth_algorithm: str = Field(default="HS256", description="JWT algorithm")
    auth_access_token_expire_minutes: int = Field(
        default=15, description="Access token expiration (minutes)"
    )

    # Storage
    storage_backend: Literal["memory", "cassandra"] = Field(
        default="memory", description="Enrollment/course storage backend"
    )
    cassandra_hosts: list[str] = Field(
        default=["localhost"], description="Cassandra hosts"
    )
    cassandra_port: int = Field(default=9042, description="Cassandra port")
    cassandra_keyspace: str = Field(
        default="coursehub", description="Cassandra keyspace"
    )
    cassandra_username: str | None = Field(default=None, description="Cassandra user")
    cassandra_password: str | None = Field(
        default=None, description="Cassandra password"
    )
    cassandra_protocol_version: int = Field(default=4, description="Protocol version")
    cassandra_connect_timeout: float = Field(
        default=10.0, description="Connect timeout"
    )
    cassandra_request_timeout: float = Field(
        default=10.0, description="Request timeout"
    )
    lwt_max_attempts: int = Field(
        default=5,
        description="Optimistic update attempts before giving up with a conflict",
    )

    # Payment gateway
    payment_gateway_url: str = Field(
        default="http://localhost:8100", description="Payment gateway base URL"
    )
    payment_api_key: str | None = Field(
        default=None, description="Payment gateway API key (KEEP SECRET!)"
    )
    payment_webhook_secret: str | None = Field(
        default=None,
        description="Shared secret for webhook signatures (unsigned when unset)",
    )
    payment_currency: str = Field(default="gbp", description="Checkout currency")
    payment_timeout_seconds: float = Field(
        default=10.0, description="Timeout per payment gateway call"
    )

    # Upstream retry policy (identity / payment calls)
    upstream_max_attempts: int = Field(
        default=3, ge=1, description="Attempts per upstream call"
    )
    upstream_backoff_base_seconds: float = Field(
        default=0.2, ge=0, description="First backoff delay"
    )
    upstream_backoff_max_seconds: float = Field(
        default=2.0, ge=0, description="Backoff delay cap"
    )

    # Progress estimates
    daily_study_budget_minutes: int = Field(
        default=45, gt=0, description="Study minutes per day for estimates"
    )
    default_lesson_duration_minutes: int = Field(
        default=30,
        ge=0,
        description="Duration assumed for lessons without one (estimates only)",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="DEBUG", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", description="Log format"
    )
    log_include_caller_info: bool = Field(
        default=True, description="Include caller info"
    )
    log_dir: str = Field(default="logs", description="Directory for log files")
    log_file_max_bytes: int = Field(
        default=10 * 1024 * 1024, description="Max size per log file (10MB default)"
    )
    log_file_backup_count: int = Field(
        default=5, description="Number of backup log files to keep"
    )
    log_requests: bool = Field(
        default=True, description="Log HTTP request start/finish"
    )
    log_exclude_paths: list[str] = Field(
        default=["/health", "/health/live", "/health/ready"],
        description="Paths to exclude from request logging",
    )

    # CORS
    cors_origins: list[str] = Field(default=["*"], description="CORS origins")
    cors_allow_credentials: bool = Field(default=True, description="Allow credentials")
    cors_allow_methods: list[str] = Field(default=["*"], description="Allowed methods")
    cors_allow_headers: list[str] = Field(default=["*"], description="Allowed headers")
    cors_max_age: int = Field(default=600, description="CORS max age")

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment == "testing"

    @property
    def payment_gateway_configured(self) -> bool:
        """Check if the payment gateway credentials are present."""
        return bool(self.payment_gateway_url and self.payment_api_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
