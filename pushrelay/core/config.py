"""
Application configuration loaded from environment variables with sensible
defaults for local development.

All settings are validated at startup via Pydantic ``BaseSettings``.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the push relay."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -- Application --
    app_name: str = "pushrelay"
    app_version: str = "0.1.0"

    # -- Logging --
    log_level: str = "INFO"
    log_hide_token: bool = True

    # -- Core / feedback --
    core_sync: bool = False
    core_feedback_url: str = ""
    core_feedback_timeout: int = Field(default=10, ge=1)

    # -- Android (FCM) --
    android_project_id: str = ""
    android_max_retry: int = Field(default=0, ge=0)
    android_batch_limit: int = Field(default=500, ge=1, le=500)
    android_dispatch_concurrency: int = Field(default=4, ge=1)

    # -- Firebase credentials for the default project --
    firebase_service_account_path: str = ""
    firebase_credentials_json: str = ""


settings = Settings()
