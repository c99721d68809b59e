"""
Engine settings using Pydantic.

Provides environment-based configuration loading with FXCORE_ prefix.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="FXCORE_",
    )

    # Logging
    log_level: str = "INFO"

    # Scheduling
    fast_fail: bool = False

    # Dependency sequencer: stop installing after the first missing tool
    dependency_fast_fail: bool = True

    # Persistence
    state_dir: Path = Path(".fx")

    # Environment selected when none is given
    default_environment: str = "default"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
