"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="Reelport", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )

    import_max_candidates: int = Field(
        default=5, alias="IMPORT_MAX_CANDIDATES", ge=1, le=20
    )
    preview_concurrency: int = Field(
        default=4, alias="PREVIEW_CONCURRENCY", ge=1, le=32
    )
    search_cache_ttl_seconds: int = Field(
        default=300, alias="SEARCH_CACHE_TTL", ge=0
    )
    search_cache_max_entries: int = Field(
        default=1_000, alias="SEARCH_CACHE_MAX_ENTRIES", ge=1
    )
    upload_max_bytes: int = Field(
        default=10 * 1024 * 1024, alias="UPLOAD_MAX_BYTES", ge=1
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./reelport.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_log_level(cls, value: object) -> str:
        """Accept log level names in any case."""

        if value is None:
            return "INFO"
        level = str(value).strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError("LOG_LEVEL must be a standard logging level name")
        return level

    @field_validator("tmdb_api_key", mode="before")
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip() or None
        return value

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
