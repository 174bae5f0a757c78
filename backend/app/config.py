import uuid
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Leave Workflow"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "postgresql+asyncpg://leave:leave@db:5432/leave"
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]
    log_level: str = "INFO"

    # Approval workflow
    system_actor_id: uuid.UUID = uuid.UUID(int=0)
    day_count_mode: Literal["CALENDAR", "BUSINESS"] = "CALENDAR"
    enforce_balance_on_submit: bool = False
    hr_roles: list[str] = ["hr", "admin"]
    manager_roles: list[str] = ["manager"]
    cancel_override_roles: list[str] = ["hr", "admin"]
    allow_self_cancel_approved: bool = True

    # Notification pipeline
    notification_queue_size: int = 1000  # 0 means unbounded
    notification_drain_timeout_seconds: float = 5.0

    # Channels
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    email_sender: str = "no-reply@example.com"
    email_sender_name: str = "Leave Workflow"
    firebase_credentials_path: str | None = None


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings | None) -> None:
    """Replace the cached settings (for testing). ``None`` forces a reload."""
    global _settings
    _settings = settings
