"""
Configuration management using pydantic-settings.

Loads settings from environment variables and .env files.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_DB_PATH = Path(__file__).parent.parent.parent / "data" / "portal.db"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    storage_backend: Literal["memory", "sqlite"] = Field(
        default="sqlite",
        description="Key-value medium backing the claims store",
    )
    storage_path: Path = Field(
        default=DEFAULT_DB_PATH,
        description="SQLite file used when storage_backend is 'sqlite'",
    )

    # Data source (selected once at startup)
    data_source: Literal["live", "fixture"] = Field(
        default="fixture",
        description="'live' talks to the portal backend, 'fixture' fabricates demo data locally",
    )
    risk_analyzer: Literal["rules", "openai"] = Field(
        default="rules",
        description="Risk analyzer used by the fixture data source",
    )
    api_base_url: str = Field(
        default="http://localhost:7071/api",
        description="Base URL of the portal backend",
    )
    api_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout applied to every backend request",
    )

    # OpenAI (only used by the openai risk analyzer)
    openai_api_key: Optional[str] = Field(
        default=None,
        description="OpenAI API key",
    )
    openai_risk_model: str = Field(
        default="gpt-4o-mini",
        description="Model used for claim text analysis",
    )

    # Session tokens
    token_secret: str = Field(
        default="change-me-in-production",
        description="HMAC secret used to sign session tokens",
    )
    token_ttl_seconds: int = Field(
        default=24 * 60 * 60,
        description="Session token lifetime",
    )

    # Client-side throttling
    login_max_attempts: int = Field(default=5, description="Login attempts per window")
    login_window_seconds: int = Field(default=15 * 60, description="Login throttling window")
    register_max_attempts: int = Field(default=3, description="Registration attempts per window")
    register_window_seconds: int = Field(default=60 * 60, description="Registration throttling window")

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")

    @property
    def log_level(self) -> str:
        """Logging level name derived from the debug flag."""
        return "DEBUG" if self.debug else "INFO"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to avoid re-reading environment on every call.
    """
    return Settings()
