"""
GrooveForge Configuration

Environment-based configuration for the composer service and CLI.
"""
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _app_version_from_package() -> str:
    """Read version from installed package metadata."""
    from importlib.metadata import PackageNotFoundError, version

    try:
        return version("grooveforge")
    except PackageNotFoundError:
        return "0.0.0-unknown"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="GROOVEFORGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "GrooveForge"
    app_version: str = _app_version_from_package()
    debug: bool = False

    # Generation defaults (used when a request leaves them out)
    default_bpm: float = 140.0
    default_key: str = "F#"
    default_scale: str = "Minor"
    default_duration_minutes: float = 6.0

    # Quality gate
    qa_pass_threshold: float = 75.0
    max_generation_attempts: int = 3

    # Style profile store
    max_references_per_genre: int = 200

    # CORS (comma-separated in env)
    cors_origins: list[str] = []

    @model_validator(mode="after")
    def _check_limits(self) -> "Settings":
        if self.max_generation_attempts < 1:
            raise ValueError("GROOVEFORGE_MAX_GENERATION_ATTEMPTS must be at least 1")
        if self.max_references_per_genre < 1:
            raise ValueError("GROOVEFORGE_MAX_REFERENCES_PER_GENRE must be at least 1")
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
