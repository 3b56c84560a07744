"""Tests for configuration module."""

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from apptoolkit.config import Settings, get_settings, print_settings_json


class TestSettings:
    """Test Settings class."""

    def test_default_settings(self, monkeypatch) -> None:
        """Settings should have sensible defaults."""
        monkeypatch.delenv("APPTOOLKIT_CACHE_DIR", raising=False)
        settings = Settings()

        assert (
            settings.cache_dir
            == Path.home() / ".cache" / "apptoolkit" / "image_cache"
        )
        assert settings.max_cache_size_bytes == 100 * 1024 * 1024
        assert settings.max_age_days == 7
        assert settings.max_memory_cache_items == 100
        assert settings.memory_strict_lru is False
        assert settings.default_flavors == {
            "dev": "lib/main_dev.dart",
            "prod": "lib/main_prod.dart",
        }
        assert settings.default_build_types == ["apk", "appbundle", "ipa"]
        assert settings.build_tool == "flutter"
        assert settings.run_codegen is False
        assert settings.log_level == "INFO"

    def test_settings_from_env(self) -> None:
        """Settings should be loadable from environment variables."""
        with patch.dict(
            os.environ,
            {
                "APPTOOLKIT_MAX_AGE_DAYS": "3",
                "APPTOOLKIT_LOG_LEVEL": "DEBUG",
                "APPTOOLKIT_MEMORY_STRICT_LRU": "true",
                "APPTOOLKIT_DEFAULT_BUILD_TYPES": '["apk"]',
            },
        ):
            settings = Settings()
            assert settings.max_age_days == 3
            assert settings.log_level == "DEBUG"
            assert settings.memory_strict_lru is True
            assert settings.default_build_types == ["apk"]

    def test_settings_cache_dir_from_env(self) -> None:
        """Cache dir should be configurable via env."""
        with patch.dict(
            os.environ,
            {
                "APPTOOLKIT_CACHE_DIR": "/tmp/test-cache",
            },
        ):
            settings = Settings()
            assert settings.cache_dir == Path("/tmp/test-cache")

    def test_invalid_values_rejected(self) -> None:
        """Limits must be positive."""
        with pytest.raises(ValidationError):
            Settings(max_memory_cache_items=0)
        with pytest.raises(ValidationError):
            Settings(log_level="LOUD")

    def test_builds_dir_relative_to_project(self, tmp_path) -> None:
        """Relative builds dir should be anchored at the project dir."""
        settings = Settings(project_dir=tmp_path / "app")
        assert settings.resolved_builds_dir() == tmp_path / "app" / "builds"

    def test_builds_dir_absolute(self, tmp_path) -> None:
        settings = Settings(project_dir=tmp_path / "app", builds_dir=tmp_path / "out")
        assert settings.resolved_builds_dir() == tmp_path / "out"


class TestGetSettings:
    """Test get_settings function."""

    def test_get_settings_returns_settings(self) -> None:
        """get_settings should return a Settings instance."""
        settings = get_settings()
        assert isinstance(settings, Settings)


class TestPrintSettingsJson:
    """Test print_settings_json function."""

    def test_print_settings_json(self) -> None:
        """print_settings_json should return valid JSON."""
        settings = Settings()
        json_str = print_settings_json(settings)

        # Should be valid JSON
        parsed = json.loads(json_str)

        # Should contain expected keys
        assert "cache_dir" in parsed
        assert "max_cache_size_bytes" in parsed
        assert "default_flavors" in parsed
        assert "prep_commands" in parsed

    def test_print_settings_json_default(self) -> None:
        """print_settings_json without args should use default settings."""
        json_str = print_settings_json()
        parsed = json.loads(json_str)
        assert "cache_dir" in parsed
