"""Unit tests for configuration and settings."""
import os

import pytest

from railfaults.config import Settings, get_settings, reset_settings_cache


class TestSettings:
    """Test configuration management."""

    def test_get_settings_returns_same_instance(self):
        """Test that get_settings returns cached instance."""
        assert get_settings() is get_settings()

    def test_reset_settings_cache(self):
        """Test that cache can be reset."""
        settings1 = get_settings()
        reset_settings_cache()
        settings2 = get_settings()

        assert settings1 is not settings2

    def test_environment_overrides_defaults(self):
        """The test suite points storage at a temporary directory."""
        settings = get_settings()

        assert settings.database_url == os.environ["DATABASE_URL"]
        assert settings.upload_dir == os.environ["UPLOAD_DIR"]
        assert settings.rate_limiting_enabled is False

    def test_image_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.max_images_per_request == 5
        assert settings.image_max_dimension == 1024
        assert settings.image_jpeg_quality == 80
        assert settings.image_processing_timeout > 0
        assert settings.image_workers == 2

    def test_server_defaults(self, monkeypatch):
        monkeypatch.delenv("PORT", raising=False)
        settings = Settings(_env_file=None)

        assert settings.port == 3000
        assert isinstance(settings.cors_origins, list)
        assert settings.login_rate_limit == "10/minute"

    def test_jpeg_quality_is_bounded(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, image_jpeg_quality=0)
