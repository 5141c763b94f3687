"""Tests for settings models and the settings loader."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from decision_surface.config import (
    OrchestrationSettings,
    Settings,
    get_config,
    load_settings,
    reload_config,
    set_config,
)
from decision_surface.shared.errors import ApplicationError, ErrorCode
from decision_surface.shared.models.source import SourceId


@pytest.fixture
def temp_config(tmp_path: Path) -> Path:
    """Create temporary config file."""
    config_file = tmp_path / "settings.toml"
    config_file.write_text(
        """
[logging]
level = "debug"

[api]
base_url = "https://backend.example"
timezone = "Europe/Berlin"

[cache]
directory = "state"
max_entries = 50

[orchestration]
settle_delay = 0.5
default_range_days = 14

[orchestration.fresh_for_seconds]
life-wheel = 300
""",
        encoding="utf-8",
    )
    return config_file


class TestSettingsModels:
    """Field defaults and validation."""

    def test_defaults(self):
        settings = Settings()

        assert settings.logging.level == "INFO"
        assert settings.cache.enabled is True
        assert settings.cache.db_path.name == "decision_cache.db"
        assert settings.orchestration.settle_delay == 1.0
        assert settings.api.access_token is None

    def test_fresh_for_normalizes_source_names(self):
        orchestration = OrchestrationSettings(fresh_for_seconds={"health-insights": 60})

        assert orchestration.fresh_for_seconds == {"health_insights": 60.0}
        assert orchestration.fresh_for(SourceId.HEALTH_INSIGHTS) == timedelta(minutes=1)
        assert orchestration.fresh_for(SourceId.BRIEFING) == timedelta(0)

    @pytest.mark.parametrize(
        "fresh_for",
        [{"weather": 60}, {"briefing": -1}],
    )
    def test_invalid_fresh_for_rejected(self, fresh_for):
        with pytest.raises(ValidationError):
            OrchestrationSettings(fresh_for_seconds=fresh_for)

    def test_invalid_log_level_rejected(self):
        with pytest.raises(ValidationError):
            Settings(logging={"level": "LOUD"})

    def test_access_token_is_masked_when_saved(self, tmp_path):
        settings = Settings(api={"access_token": "super-secret"})
        target = tmp_path / "out" / "config.toml"

        settings.to_toml_file(target)

        assert "super-secret" not in target.read_text(encoding="utf-8")
        assert settings.api.access_token.get_secret_value() == "super-secret"


class TestLoadSettings:
    """TOML files, environment overrides and error mapping."""

    def test_load_from_toml(self, temp_config):
        settings = load_settings(temp_config)

        assert settings.logging.level == "DEBUG"
        assert settings.api.base_url == "https://backend.example"
        assert settings.cache.directory == Path("state")
        assert settings.cache.max_entries == 50
        assert settings.orchestration.default_range_days == 14
        assert settings.orchestration.fresh_for(SourceId.LIFE_WHEEL) == timedelta(minutes=5)

    def test_environment_overrides_defaults(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DECISION_SURFACE_CACHE__DIRECTORY", str(tmp_path / "env-cache"))
        monkeypatch.setenv("DECISION_SURFACE_API__TIMEOUT", "5")

        settings = load_settings()

        assert settings.cache.directory == tmp_path / "env-cache"
        assert settings.api.timeout == 5.0

    def test_default_location_is_discovered(self, tmp_path):
        config_dir = tmp_path / "config"
        config_dir.mkdir()
        (config_dir / "config.toml").write_text('[api]\nbase_url = "http://found"\n')

        assert load_settings().api.base_url == "http://found"

    def test_missing_file_is_config_error(self, tmp_path):
        with pytest.raises(ApplicationError) as exc_info:
            load_settings(tmp_path / "nope.toml")
        assert exc_info.value.code == ErrorCode.CONFIGURATION_ERROR

    def test_invalid_values_are_config_error(self, tmp_path):
        bad = tmp_path / "bad.toml"
        bad.write_text("[cache]\nmax_entries = 0\n")

        with pytest.raises(ApplicationError) as exc_info:
            load_settings(bad)
        assert isinstance(exc_info.value.original_error, ValidationError)


class TestSettingsSingleton:
    """Global settings access."""

    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_reload_replaces_instance(self, temp_config):
        first = get_config()
        reloaded = reload_config(temp_config)

        assert reloaded is not first
        assert get_config() is reloaded

    def test_set_config_installs_instance(self):
        custom = Settings(api={"base_url": "http://custom"})
        set_config(custom)

        assert get_config() is custom

    def test_concurrent_get_config_single_instance(self):
        barrier = threading.Barrier(8)

        def load():
            barrier.wait()
            return get_config()

        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(lambda _: load(), range(8)))

        assert all(result is results[0] for result in results)
