"""Application settings loaded from environment variables."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# libs/core/settings.py -> project_root/config/prompts.yaml
DEFAULT_PROMPTS_PATH = Path(__file__).resolve().parents[2] / "config" / "prompts.yaml"


def _default_postgres_uri_from_env() -> str:
    """Build Postgres URI from component env vars if POSTGRES_URI is not set.

    POSTGRES_USER/PASSWORD/HOST/PORT/DB are read individually; an explicit
    POSTGRES_URI overrides the assembled value.
    """
    user = os.getenv("POSTGRES_USER", "postgres")
    password = os.getenv("POSTGRES_PASSWORD", "postgres")
    host = os.getenv("POSTGRES_HOST", "postgres")
    port = os.getenv("POSTGRES_PORT", "5432")
    db = os.getenv("POSTGRES_DB", "speechpath")
    return f"postgresql+psycopg://{user}:{password}@{host}:{port}/{db}"


class Settings(BaseSettings):
    """Runtime settings for the application."""

    service_name: str = Field(default="speechpath-library")
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")

    # Text generator (Replicate). An empty token disables every LLM feature.
    replicate_api_token: str = Field(default="")
    chat_model: str = Field(default="openai/gpt-4o-mini")
    notes_model: str = Field(default="openai/gpt-4o-mini")
    metadata_model: str = Field(default="openai/gpt-4o-mini")
    llm_log_payloads: bool = Field(default=False)
    llm_max_completion_tokens: int = Field(default=1024)
    prompts_path: Path = Field(default=DEFAULT_PROMPTS_PATH)

    # Optional direct URI override (env: POSTGRES_URI). If not set, a default
    # is assembled from POSTGRES_USER/PASSWORD/HOST/PORT/DB.
    postgres_uri: str = Field(default_factory=_default_postgres_uri_from_env)
    uploads_dir: Path = Field(default=Path("/tmp/speechpath-uploads"))
    max_upload_bytes: int = Field(default=15 * 1024 * 1024)
    library_limit: int = Field(default=200)

    # JSON list of {"username", "password", "email"} objects
    basic_users: str = Field(default="")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        # BASIC_USER_<X>/BASIC_PASS_<X> pairs are read by libs.core.users,
        # not by this class.
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Return application settings instance."""
    return Settings()


__all__ = ["Settings", "get_settings", "DEFAULT_PROMPTS_PATH"]
