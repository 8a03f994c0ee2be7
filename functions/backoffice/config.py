"""
Configuration and settings for the back-office service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service and scripts."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Firebase (Realtime Database, Auth, Storage)
    firebase_database_url: Optional[str] = Field(
        default=None, env="FIREBASE_DATABASE_URL"
    )
    firebase_storage_bucket: Optional[str] = Field(
        default=None, env="FIREBASE_STORAGE_BUCKET"
    )
    firebase_credentials_path: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "GOOGLE_APPLICATION_CREDENTIALS", "FIREBASE_CREDENTIALS_PATH"
        ),
    )

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "BACKOFFICE_USE_IN_MEMORY_BACKENDS", "USE_IN_MEMORY_BACKENDS"
        ),
    )

    # Durable cache: SQLAlchemy URL, or Redis when redis_url is set
    cache_database_url: str = Field(
        default="sqlite:///./var/backoffice_cache.db", env="CACHE_DATABASE_URL"
    )
    redis_url: Optional[str] = Field(default=None, env="REDIS_URL")
    redis_cache_prefix: str = Field(
        default="backoffice:cache:", env="REDIS_CACHE_PREFIX"
    )

    # S3-compatible storage (used instead of Firebase Storage when set)
    cos_endpoint: Optional[str] = Field(default=None, env="COS_ENDPOINT")
    cos_region: Optional[str] = Field(default=None, env="COS_REGION")
    cos_bucket: Optional[str] = Field(default=None, env="COS_BUCKET")
    cos_public_base_url: Optional[str] = Field(
        default=None, env="COS_PUBLIC_BASE_URL"
    )
    aws_access_key_id: Optional[str] = Field(
        default=None, env="AWS_ACCESS_KEY_ID"
    )
    aws_secret_access_key: Optional[str] = Field(
        default=None, env="AWS_SECRET_ACCESS_KEY"
    )

    # Listing / caching knobs
    employee_page_size: int = Field(default=5, env="EMPLOYEE_PAGE_SIZE")
    employee_fetch_buffer: int = Field(default=15, env="EMPLOYEE_FETCH_BUFFER")
    search_result_limit: int = Field(default=10, env="SEARCH_RESULT_LIMIT")
    employees_index_max_age_seconds: int = Field(
        default=24 * 60 * 60, env="EMPLOYEES_INDEX_MAX_AGE_SECONDS"
    )
    registrations_index_max_age_seconds: int = Field(
        default=2 * 60, env="REGISTRATIONS_INDEX_MAX_AGE_SECONDS"
    )
    projects_list_limit: int = Field(default=50, env="PROJECTS_LIST_LIMIT")
    submissions_list_limit: int = Field(default=50, env="SUBMISSIONS_LIST_LIMIT")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
