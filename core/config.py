"""
Core configuration using Pydantic Settings.
Loads from environment variables.
"""

from functools import lru_cache
from typing import Literal
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # App
    app_name: str = Field(default="opentowork", alias="APP_NAME")
    app_env: Literal["development", "test", "staging", "production"] = Field(
        default="development", alias="APP_ENV"
    )
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", alias="LOG_LEVEL"
    )
    json_logs: bool = Field(default=True, alias="JSON_LOGS")

    # API
    api_v1_prefix: str = "/api/v1"
    allowed_origins: list[str] = Field(
        default=["http://localhost:5173", "http://localhost:8080"],
        alias="ALLOWED_ORIGINS",
    )

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./opentowork.db", alias="DATABASE_URL"
    )
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    # Redis (session backups). Unset means in-process storage.
    redis_url: str | None = Field(default=None, alias="REDIS_URL")

    # Auth
    jwt_secret_key: str = Field(
        default="change-me-in-production-please-32-chars", alias="JWT_SECRET_KEY"
    )
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60, alias="ACCESS_TOKEN_EXPIRE_MINUTES"
    )
    refresh_token_expire_days: int = Field(
        default=7, alias="REFRESH_TOKEN_EXPIRE_DAYS"
    )
    verification_code_ttl_minutes: int = Field(
        default=15, alias="VERIFICATION_CODE_TTL_MINUTES"
    )

    # Deadlines for every call into storage, blob store, session store and email
    request_timeout_seconds: float = Field(default=7.0, alias="REQUEST_TIMEOUT_SECONDS")
    auth_bootstrap_timeout_seconds: float = Field(
        default=2.0, alias="AUTH_BOOTSTRAP_TIMEOUT_SECONDS"
    )
    # Resolved roles are reused for this long before being re-read
    identity_cache_ttl_seconds: float = Field(default=30.0, alias="IDENTITY_CACHE_TTL_SECONDS")

    # Email
    email_backend: Literal["console", "smtp"] = Field(
        default="console", alias="EMAIL_BACKEND"
    )
    smtp_host: str | None = Field(default=None, alias="SMTP_HOST")
    smtp_port: int = Field(default=587, alias="SMTP_PORT")
    smtp_user: str | None = Field(default=None, alias="SMTP_USER")
    smtp_password: str | None = Field(default=None, alias="SMTP_PASSWORD")
    from_email: str = Field(default="noreply@opentowork.local", alias="FROM_EMAIL")

    # Blob storage
    storage_backend: Literal["local", "s3"] = Field(default="local", alias="STORAGE_BACKEND")
    storage_path: str = Field(default="./storage", alias="STORAGE_PATH")
    storage_public_base_url: str = Field(
        default="http://localhost:8000/files", alias="STORAGE_PUBLIC_BASE_URL"
    )
    resume_bucket: str = Field(default="resumes", alias="RESUME_BUCKET")
    resume_max_bytes: int = Field(default=5 * 1024 * 1024, alias="RESUME_MAX_BYTES")

    # S3
    aws_access_key_id: str | None = Field(default=None, alias="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: str | None = Field(default=None, alias="AWS_SECRET_ACCESS_KEY")
    aws_region: str = Field(default="us-east-1", alias="AWS_REGION")

    # Logging
    log_request_body: bool = Field(default=False, alias="LOG_REQUEST_BODY")
    log_max_body_size: int = Field(default=1024, alias="LOG_MAX_BODY_SIZE")


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings, loaded once."""
    return Settings()


# Global settings instance
settings = get_settings()
