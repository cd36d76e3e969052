"""Application configuration."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from voiceai.core.exceptions import ConfigurationError


DEFAULT_JWT_SECRET = "dev-secret-change-me"


class DatabaseSettings(BaseModel):
    """Database configuration."""

    url: str = "sqlite+aiosqlite:///data/voiceai.db"
    echo: bool = False


class ReportSettings(BaseModel):
    """Monthly report generation configuration."""

    # Where generated PDFs are written
    storage_dir: str = "./reports"

    # Hour-of-day bucketing and business hours use this zone
    timezone: str = "Europe/Paris"
    business_hours_start: int = 8
    business_hours_end: int = 19

    # Business constants for revenue/ROI estimates (currency agnostic)
    average_client_value: float = 150.0
    ai_cost_per_month: float = 50.0

    # In-process daily scheduler; disable when an external workflow
    # tool calls the cron endpoint instead
    scheduler_enabled: bool = True
    run_at_hour: int = 2

    # Users whose subscription renews within this window get a report
    eligibility_window_min_days: float = 1.5
    eligibility_window_max_days: float = 2.5

    email_max_retries: int = 3
    retention_days: int = 90

    # Optional link to the dashboard reports page, shown in the email
    download_base_url: str = ""


class PDFSettings(BaseModel):
    """Headless Chromium PDF rendering configuration."""

    chromium_path: str = ""  # Empty = browser bundled with Playwright
    viewport_width: int = 1200
    viewport_height: int = 1600
    device_scale_factor: float = 2.0

    content_timeout_ms: int = 30_000
    chart_timeout_ms: int = 10_000
    chart_poll_ms: int = 100
    settle_delay_ms: int = 500

    margin: str = "20px"


class SMTPSettings(BaseModel):
    """SMTP email configuration."""

    host: str = ""
    port: int = 587
    username: str = ""
    password: str = ""
    use_tls: bool = True
    use_ssl: bool = False


class SendGridSettings(BaseModel):
    """SendGrid email configuration."""

    api_key: str = ""


class EmailSettings(BaseModel):
    """Email gateway configuration."""

    enabled: bool = False
    provider: str = "smtp"  # smtp, sendgrid, mock
    from_email: str = "rapports@voiceai.fr"
    from_name: str = "VoiceAI"
    reply_to: str = ""
    smtp: SMTPSettings = Field(default_factory=SMTPSettings)
    sendgrid: SendGridSettings = Field(default_factory=SendGridSettings)


class Settings(BaseSettings):
    """Application settings.

    Loaded from:
    1. Environment variables (VOICEAI_*)
    2. configs/{environment}.yaml
    3. configs/default.yaml
    """

    model_config = SettingsConfigDict(
        env_prefix="VOICEAI_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Environment
    environment: str = "development"
    debug: bool = True

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173"])

    # JWT Authentication
    jwt_secret_key: str = ""  # MUST be set in production!
    jwt_expiry_minutes: int = 60
    jwt_algorithm: str = "HS256"

    # Shared secret for the external cron trigger (empty = endpoint disabled)
    cron_api_key: str = ""

    # Subsystems
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    reports: ReportSettings = Field(default_factory=ReportSettings)
    pdf: PDFSettings = Field(default_factory=PDFSettings)
    email: EmailSettings = Field(default_factory=EmailSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings object loaded from config files and environment.
    """
    import os
    from dynaconf import Dynaconf

    # Determine paths
    config_dir = Path(os.getenv("VOICEAI_CONFIG_DIR", "configs"))
    env = os.getenv("VOICEAI_ENV", "development")

    settings_files = []
    if (config_dir / "default.yaml").exists():
        settings_files.append(str(config_dir / "default.yaml"))
    if (config_dir / f"{env}.yaml").exists():
        settings_files.append(str(config_dir / f"{env}.yaml"))

    dynaconf = Dynaconf(
        envvar_prefix="VOICEAI",
        settings_files=settings_files,
        load_dotenv=True,
    )

    config_dict: dict[str, Any] = {}
    for key in dynaconf.keys():
        if not key.startswith("_"):
            config_dict[key.lower()] = _lower_keys(dynaconf[key])

    config_dict["environment"] = env

    return Settings(**config_dict)


def _lower_keys(value: Any) -> Any:
    """Dynaconf upper-cases nested keys loaded from the environment."""
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    return value


def validate_production_settings(settings: Settings) -> list[str]:
    """Validate settings for production readiness.

    Args:
        settings: Application settings to validate.

    Returns:
        List of validation error messages (empty if all valid).
    """
    errors: list[str] = []

    # Only enforce strict validation in production
    if settings.environment not in ("production", "staging", "prod"):
        return errors

    if not settings.jwt_secret_key or settings.jwt_secret_key == DEFAULT_JWT_SECRET:
        errors.append("VOICEAI_JWT_SECRET_KEY must be set in production")

    if settings.debug:
        errors.append("VOICEAI_DEBUG must be false in production")

    if settings.database.url.startswith("sqlite"):
        errors.append("VOICEAI_DATABASE__URL must not point to SQLite in production")

    if not settings.reports.scheduler_enabled and not settings.cron_api_key:
        errors.append(
            "VOICEAI_CRON_API_KEY must be set when the report scheduler is disabled"
        )

    if settings.email.enabled and settings.email.provider == "mock":
        errors.append("VOICEAI_EMAIL__PROVIDER must not be 'mock' in production")

    return errors


def require_valid_settings() -> Settings:
    """Get settings and raise if production validation fails.

    Raises:
        ConfigurationError: If production settings are invalid.

    Returns:
        Validated settings.
    """
    settings = get_settings()
    errors = validate_production_settings(settings)

    if errors:
        error_list = "\n  - ".join(errors)
        raise ConfigurationError(
            f"Production configuration errors:\n  - {error_list}",
            details={"errors": errors},
        )

    return settings
