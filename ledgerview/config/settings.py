"""
Configuration Management for Ledger Viewer

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The remote-call policy (timeouts, read retries) lives next to the
application settings so the whole behaviour of the view can be read
in one place and is validated at startup.
"""

from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RemoteSettings(BaseSettings):
    """Policy for calls to the ledger backend."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_REMOTE_",
        extra="ignore"
    )

    timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=120.0,
        description="Upper bound for a single backend call"
    )
    # 1 means "no automatic retry"; writes are never retried regardless
    read_retry_attempts: int = Field(
        default=1,
        ge=1,
        le=5,
        description="Attempts for idempotent reads that time out or lose the connection"
    )
    retry_wait_min_seconds: float = Field(
        default=0.5,
        ge=0.0,
        description="Minimum backoff between read attempts"
    )
    retry_wait_max_seconds: float = Field(
        default=4.0,
        ge=0.0,
        description="Maximum backoff between read attempts"
    )

    @model_validator(mode='after')
    def validate_backoff(self) -> 'RemoteSettings':
        """Backoff window must not be inverted."""
        if self.retry_wait_max_seconds < self.retry_wait_min_seconds:
            raise ValueError("retry_wait_max_seconds cannot be below retry_wait_min_seconds")
        return self


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Environment name bound into every log line"
    )
    debug_mode: bool = Field(
        default=False,
        description="Log at DEBUG whatever log_level says, and open the audit panel"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Stdlib log level used by the structlog filter"
    )
    log_json: bool = Field(
        default=True,
        description="Render log lines as JSON (False = console renderer)"
    )

    # Bounded histories kept in memory
    notification_history: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="How many user notifications to keep"
    )
    audit_history: int = Field(
        default=200,
        ge=1,
        le=10000,
        description="How many audit events to keep for inspection"
    )

    # Demo front-end
    demo_account_id: str = Field(
        default="checking",
        description="Account the demo app opens on start"
    )
    demo_currency: str = Field(
        default="EUR",
        min_length=3,
        max_length=3,
        description="Currency of the seeded demo accounts"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Only accept stdlib level names."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Unsupported log level: {v}. Allowed: {sorted(allowed)}")
        return v.upper()

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug_mode else self.log_level


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def remote(self) -> RemoteSettings:
        return RemoteSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with a
    "<name>_error" entry for each section that failed.
    """
    results = {}

    settings = get_settings()

    for name in ("remote", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
