"""Tests for centralized configuration module."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError


class TestRedisSettings:
    """Test Redis configuration settings."""

    def test_redis_default_values(self):
        from meetup.config import RedisSettings

        with patch.dict(os.environ, {}, clear=True):
            settings = RedisSettings()
            assert settings.host == "redis"
            assert settings.port == 6379
            assert settings.password == ""
            assert settings.socket_timeout is None

    def test_redis_from_environment(self):
        from meetup.config import RedisSettings

        env = {"REDIS_HOST": "custom-redis", "REDIS_PORT": "6380", "REDIS_PASSWORD": "secret123"}
        with patch.dict(os.environ, env, clear=True):
            settings = RedisSettings()
            assert settings.host == "custom-redis"
            assert settings.port == 6380
            assert settings.password == "secret123"


class TestPostgresSettings:
    """Test PostgreSQL configuration settings."""

    def test_postgres_dsn_generation(self):
        from meetup.config import PostgresSettings

        env = {
            "POSTGRES_HOST": "dbhost",
            "POSTGRES_PORT": "5433",
            "POSTGRES_USER": "myuser",
            "POSTGRES_PASSWORD": "mypass",
            "POSTGRES_DB": "mydb",
        }
        with patch.dict(os.environ, env, clear=True):
            dsn = PostgresSettings().get_dsn()
            assert "host=dbhost" in dsn
            assert "port=5433" in dsn
            assert "user=myuser" in dsn
            assert "password=mypass" in dsn
            assert "dbname=mydb" in dsn


class TestStoreSettings:

    def test_default_backend_is_postgres(self):
        from meetup.config import StoreSettings

        with patch.dict(os.environ, {}, clear=True):
            assert StoreSettings().backend == "postgres"

    def test_memory_backend(self):
        from meetup.config import StoreSettings

        with patch.dict(os.environ, {"STORE_BACKEND": "memory"}, clear=True):
            assert StoreSettings().backend == "memory"

    def test_unknown_backend_rejected(self):
        from meetup.config import StoreSettings

        with patch.dict(os.environ, {"STORE_BACKEND": "sqlite"}, clear=True):
            with pytest.raises(ValidationError):
                StoreSettings()


class TestSyncSettings:

    def test_defaults(self):
        from meetup.config import SyncSettings

        with patch.dict(os.environ, {}, clear=True):
            settings = SyncSettings()
            assert settings.poll_interval_sec == 2.0
            assert settings.heartbeat_sec == 25.0
            assert settings.resubscribe_attempts == 3
            assert settings.resubscribe_every_polls == 15
            assert settings.message_page_size == 200

    def test_from_environment(self):
        from meetup.config import SyncSettings

        env = {"SYNC_POLL_INTERVAL_SEC": "0.5", "SYNC_RESUBSCRIBE_ATTEMPTS": "5"}
        with patch.dict(os.environ, env, clear=True):
            settings = SyncSettings()
            assert settings.poll_interval_sec == 0.5
            assert settings.resubscribe_attempts == 5

    def test_non_positive_interval_rejected(self):
        from meetup.config import SyncSettings

        with pytest.raises(ValidationError):
            SyncSettings(poll_interval_sec=0)
        with pytest.raises(ValidationError):
            SyncSettings(resubscribe_every_polls=0)


class TestCorsSettings:
    """Test CORS configuration settings."""

    def test_cors_default_values(self):
        from meetup.config import CorsSettings

        with patch.dict(os.environ, {}, clear=True):
            settings = CorsSettings()
            assert "http://localhost:3000" in settings.origins
            assert settings.allow_credentials is True

    def test_cors_wildcard_disables_credentials(self):
        from meetup.config import CorsSettings

        with patch.dict(os.environ, {"CORS_ORIGINS": "*"}, clear=True):
            settings = CorsSettings()
            assert settings.origins == ["*"]
            assert settings.allow_credentials is False


class TestSettings:
    """Test main Settings class that combines all settings."""

    def test_settings_singleton_pattern(self):
        from meetup.config import get_settings

        assert get_settings() is get_settings()

    def test_clear_settings_cache(self):
        from meetup.config import clear_settings_cache, get_settings

        first = get_settings()
        clear_settings_cache()
        assert get_settings() is not first

    def test_settings_has_all_subsections(self):
        from meetup.config import Settings

        with patch.dict(os.environ, {}, clear=True):
            settings = Settings()
            for section in ("redis", "postgres", "store", "sync", "cors", "debug"):
                assert hasattr(settings, section)

    def test_debug_settings(self):
        from meetup.config import Settings

        with patch.dict(os.environ, {"REQUEST_DEBUG": "1", "WS_DEBUG": "true"}, clear=True):
            settings = Settings()
            assert settings.debug.request is True
            assert settings.debug.websocket is True
