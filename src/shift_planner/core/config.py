from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_prefix="SHIFT_PLANNER_", case_sensitive=False)

    environment: Literal["development", "staging", "production"] = "development"
    project_name: str = "Shift Planner API"
    version: str = "0.1.0"

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    policy_path: Path | None = None


@lru_cache
def get_settings() -> Settings:
    return Settings()
