# app/core/config.py
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = "sqlite:///./fileshare.db"

    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: str = "us-east-1"
    aws_s3_bucket_name: str = "files"
    # S3-compatible stores (MinIO, R2, ...) need an explicit endpoint
    aws_s3_endpoint_url: Optional[str] = None
    # public host used to build file links, e.g. a CDN in front of the bucket
    public_base_url: Optional[str] = None

    session_cookie_name: str = "fileshare_session"
    session_max_age_hours: int = 24 * 14
    # screens not rendered for this long are dropped from memory
    screen_idle_minutes: int = 60

    log_level: str = "INFO"
    log_dir: str = "logs"

    # Tell pydantic-settings to load from .env at project root
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # ignore any extra stuff in .env
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
