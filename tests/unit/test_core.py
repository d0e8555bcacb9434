"""
Unit tests for core module.
"""

from pathlib import Path

import pytest


class TestSettings:
    """Tests for core.config settings."""

    def test_settings_defaults(self, monkeypatch):
        """Test default settings values."""
        monkeypatch.delenv("ENVIRONMENT", raising=False)
        monkeypatch.delenv("DEBUG", raising=False)
        monkeypatch.delenv("WATCH_ENABLED", raising=False)

        from core.config import Settings
        settings = Settings(_env_file=None)

        assert settings.app_name == "Effect Studio"
        assert settings.environment == "development"
        assert settings.debug is False
        assert settings.watch_enabled is True
        assert settings.fallback_locale == "en"

    def test_settings_from_env(self, monkeypatch):
        """Test settings loaded from environment."""
        monkeypatch.setenv("APP_NAME", "Test App")
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("PROMPTS_DIR", "/srv/prompts")
        monkeypatch.setenv("REDIS_ENABLED", "true")

        from core.config import Settings
        settings = Settings()

        assert settings.app_name == "Test App"
        assert settings.is_production is True
        assert settings.redis_enabled is True
        assert settings.default_catalog_path == Path("/srv/prompts/default_prompt.json")
        assert settings.custom_catalog_path == Path("/srv/prompts/custom_prompt.json")

    def test_cors_origins_parsing(self, monkeypatch):
        """Test CORS origins are parsed correctly."""
        monkeypatch.setenv("CORS_ORIGINS", '["http://localhost:3000","http://localhost:8080"]')

        from core.config import Settings
        settings = Settings()

        assert settings.cors_origins == ["http://localhost:3000", "http://localhost:8080"]

    def test_overrides_path_expands_user(self):
        from core.config import Settings
        settings = Settings(overrides_file="~/effects/overrides.json")

        assert settings.overrides_path == Path.home() / "effects" / "overrides.json"

    def test_get_settings_is_cached(self):
        from core.config import get_settings

        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()


class TestExceptions:
    """Tests for core.exceptions module."""

    def test_app_exception(self):
        """Test AppException creation."""
        from core.exceptions import AppException

        exc = AppException(
            message="Test error",
            error_code="test_error",
            details={"field": "value"}
        )

        assert exc.message == "Test error"
        assert exc.error_code == "test_error"
        assert exc.status_code == 500
        assert exc.to_dict() == {
            "code": "test_error",
            "message": "Test error",
            "details": {"field": "value"},
        }

    def test_defaults_without_details(self):
        from core.exceptions import CatalogReadOnlyError

        exc = CatalogReadOnlyError()

        assert exc.status_code == 403
        assert exc.to_dict() == {"code": "catalog_read_only", "message": "Catalog is read-only"}

    def test_hierarchy(self):
        from core.exceptions import (
            CatalogStorageError,
            CatalogTransportError,
            EffectNotFoundError,
            ExternalServiceError,
            NotFoundError,
            StorageError,
            UnknownCatalogError,
        )

        assert issubclass(CatalogStorageError, StorageError)
        assert issubclass(UnknownCatalogError, NotFoundError)
        assert issubclass(EffectNotFoundError, NotFoundError)
        assert issubclass(CatalogTransportError, ExternalServiceError)
        assert CatalogTransportError().status_code == 503


class TestRedis:
    """Tests for optional Redis setup."""

    @pytest.mark.asyncio
    async def test_disabled_returns_none(self, test_settings):
        from core.redis import RedisHealthCheck, init_redis, is_redis_available

        assert await init_redis(test_settings) is None
        assert is_redis_available() is False
        assert (await RedisHealthCheck.check())["status"] == "disabled"

    @pytest.mark.asyncio
    async def test_get_redis_requires_init(self):
        from core.redis import get_redis

        with pytest.raises(RuntimeError):
            await get_redis()
