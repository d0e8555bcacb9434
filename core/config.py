"""
Application configuration using Pydantic Settings.

Supports loading from environment variables and .env files.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional, List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============ Application ============
    app_name: str = "Effect Studio"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"  # development, staging, production

    # ============ Server ============
    host: str = "0.0.0.0"
    port: int = 8000

    # ============ CORS ============
    cors_origins: List[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: List[str] = ["*"]
    cors_allow_headers: List[str] = ["*"]

    # ============ Prompt Catalogs ============
    prompts_dir: str = "."
    default_catalog_file: str = "default_prompt.json"
    custom_catalog_file: str = "custom_prompt.json"

    # ============ Client ============
    api_base_url: str = "http://localhost:8000"
    request_timeout: float = 10.0
    overrides_file: str = "~/.effect_studio/builtin_overrides.json"
    default_locale: str = "en"
    fallback_locale: str = "en"

    # ============ Change Propagation ============
    watch_enabled: bool = True
    watch_interval_seconds: float = 1.0

    # ============ Redis ============
    redis_enabled: bool = False
    redis_url: str = "redis://localhost:6379/0"
    redis_max_connections: int = 10
    redis_channel: str = "effect_studio:changes"

    # ============ Logging ============
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def default_catalog_path(self) -> Path:
        return Path(self.prompts_dir) / self.default_catalog_file

    @property
    def custom_catalog_path(self) -> Path:
        return Path(self.prompts_dir) / self.custom_catalog_file

    @property
    def overrides_path(self) -> Path:
        return Path(self.overrides_file).expanduser()


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
