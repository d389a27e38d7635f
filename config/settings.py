"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=3000,
        ge=1000,
        le=65535,
        description="API port"
    )
    public_base_url: str = Field(
        default="http://localhost:3000",
        description="Externally reachable base URL, used to build ephemeral file links"
    )

    # ===================
    # UPLOADS
    # ===================
    max_upload_bytes: int = Field(
        default=15 * 1024 * 1024,
        ge=1024,
        description="Maximum accepted spreadsheet size in bytes"
    )

    # ===================
    # FIELD / MODEL CATALOGS
    # ===================
    fields_config_path: Optional[str] = Field(
        None,
        description="JSON file with required fields and their aliases"
    )
    models_config_path: Optional[str] = Field(
        None,
        description="JSON file with selectable prediction models"
    )

    # ===================
    # INFERENCE SERVICE
    # ===================
    inference_mode: str = Field(
        default="pull",
        pattern="^(pull|inline)$",
        description="pull: service fetches the file by URL; inline: file sent in the request body"
    )
    inference_base_url: str = Field(
        default="http://localhost:8080",
        description="Base URL of the prediction service"
    )
    inference_api_key: Optional[str] = Field(
        None,
        description="Bearer token for the prediction service"
    )
    inference_max_attempts: int = Field(
        default=4,
        ge=1,
        le=10,
        description="Attempts per outbound call (first try included)"
    )
    inference_base_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Backoff delay before the second attempt"
    )
    inference_max_delay_seconds: float = Field(
        default=30.0,
        ge=0,
        description="Backoff delay cap"
    )
    inference_jitter_seconds: float = Field(
        default=0.5,
        ge=0,
        le=5,
        description="Upper bound of uniform random jitter added to each backoff"
    )
    inference_attempt_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for a single HTTP attempt"
    )
    inference_inline_timeout_seconds: float = Field(
        default=600.0,
        gt=0,
        description="Timeout for a single blocking /predict attempt"
    )
    inference_poll_interval_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Sleep between status polls"
    )
    inference_max_wait_seconds: float = Field(
        default=1800.0,
        gt=0,
        description="Total wall-clock budget for a job to reach a terminal status"
    )
    inline_max_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1024,
        description="Largest file accepted for inline submission"
    )

    # ===================
    # EPHEMERAL FILES
    # ===================
    file_ttl_seconds: int = Field(
        default=3600,
        ge=60,
        description="Lifetime of an ephemeral file link"
    )
    file_sweep_interval_seconds: int = Field(
        default=60,
        ge=1,
        description="Interval between expired-file sweeps"
    )

    # ===================
    # MAIL
    # ===================
    smtp_host: Optional[str] = Field(None, description="SMTP server host")
    smtp_port: int = Field(default=587, ge=1, le=65535, description="SMTP server port")
    smtp_secure: bool = Field(default=False, description="Implicit TLS (port 465)")
    smtp_user: Optional[str] = Field(None, description="SMTP username")
    smtp_password: Optional[str] = Field(None, description="SMTP password")
    mail_from: Optional[str] = Field(None, description="Sender address, defaults to smtp_user")
    notify_on_start: bool = Field(
        default=False,
        description="Email the requester when a job is accepted"
    )
    notify_on_failure: bool = Field(
        default=True,
        description="Email the requester when a job fails"
    )

    # ===================
    # TELEGRAM
    # ===================
    telegram_bot_token: Optional[str] = Field(
        None,
        description="Telegram bot token from @BotFather"
    )
    telegram_chat_id: Optional[str] = Field(
        None,
        description="Telegram chat ID for failed-job alerts"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def telegram_configured(self) -> bool:
        """Check if Telegram is properly configured."""
        return bool(self.telegram_bot_token and self.telegram_chat_id)

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host)

    @property
    def sender_address(self) -> Optional[str]:
        return self.mail_from or self.smtp_user


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If env vars are invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
