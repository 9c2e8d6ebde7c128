"""
Configuration and settings for the portal service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.constants import FREE_DAILY_DOWNLOADS, PREMIUM_DAILY_DOWNLOADS


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")
    cors_origins: str = Field(default="")

    # Firebase project
    firebase_project_id: Optional[str] = Field(default=None)
    firebase_credentials_path: Optional[str] = Field(default=None)
    firebase_database_url: Optional[str] = Field(default=None)
    firebase_storage_bucket: Optional[str] = Field(default=None)

    # S3-compatible storage, used instead of the Firebase bucket when set.
    s3_endpoint: Optional[str] = Field(default=None)
    s3_region: Optional[str] = Field(default=None)
    s3_bucket: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)

    # Google Analytics 4 Measurement Protocol
    ga_measurement_id: Optional[str] = Field(default=None)
    ga_api_secret: Optional[str] = Field(default=None)

    # Comma separated list of accounts allowed on /admin routes.
    admin_emails: str = Field(default="")

    free_daily_downloads: int = Field(default=FREE_DAILY_DOWNLOADS, ge=0)
    premium_daily_downloads: int = Field(default=PREMIUM_DAILY_DOWNLOADS, ge=0)
    # The quota day starts at midnight in this zone.
    quota_timezone: str = Field(default="UTC")

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    @property
    def admin_email_list(self) -> list[str]:
        return [
            email.strip().lower()
            for email in self.admin_emails.split(",")
            if email.strip()
        ]

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def in_memory(self) -> bool:
        return self.use_in_memory_backends or not self.firebase_project_id


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
