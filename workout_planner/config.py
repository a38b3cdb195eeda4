"""Application settings loaded from environment variables (and a .env file)."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="WORKOUT_PLANNER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    database_url: str = "sqlite:///workout_planner.db"
    log_level: str = "INFO"

    # Static UI bundle; mounted only when the directory exists.
    frontend_dir: str = "frontend"


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
