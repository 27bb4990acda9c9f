"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from watchtower.config import ConfigLoader, Settings


def test_settings_direct_construction() -> None:
    """Direct Settings() construction works without YAML (for tests)."""
    s = Settings(secret_key="test", database_url="sqlite+aiosqlite://")
    assert s.secret_key == "test"
    assert s.ws_queue_size == 256
    assert s.ws_ping_period_seconds == 54.0
    assert s.liveness_threshold_seconds == 120


def test_load_settings_missing_env_uses_defaults() -> None:
    """load_settings for a nonexistent env falls back to field defaults."""
    with patch.dict("os.environ", {"WATCHTOWER_ENV": "nonexistent"}, clear=False):
        s = ConfigLoader.load_settings()
    assert s.secret_key == "change-me-in-production"
    assert s.database_url == "sqlite+aiosqlite:///watchtower.db"
    assert s.log_level == "INFO"


def test_load_settings_dev_loads_yaml() -> None:
    """load_settings with WATCHTOWER_ENV=dev loads from config/dev/settings.yaml."""
    with patch.dict("os.environ", {"WATCHTOWER_ENV": "dev"}, clear=False):
        s = ConfigLoader.load_settings()
    assert s.database_url == "sqlite+aiosqlite:///watchtower-dev.db"
    assert s.log_level == "DEBUG"


def test_load_settings_explicit_overrides_yaml() -> None:
    """Explicit kwargs to load_settings override YAML values."""
    with patch.dict("os.environ", {"WATCHTOWER_ENV": "dev"}, clear=False):
        s = ConfigLoader.load_settings(base_url="http://custom:9000")
    assert s.base_url == "http://custom:9000"


def test_load_settings_env_var_overrides_yaml() -> None:
    """Environment variables override YAML values."""
    env = {"WATCHTOWER_ENV": "dev", "WATCHTOWER_LOG_LEVEL": "WARNING"}
    with patch.dict("os.environ", env, clear=False):
        s = ConfigLoader.load_settings()
    assert s.log_level == "WARNING"


def test_ping_period_must_be_below_pong_wait() -> None:
    """A probe interval at or above the read deadline is rejected."""
    with pytest.raises(ValidationError):
        Settings(ws_ping_period_seconds=60.0, ws_pong_wait_seconds=60.0)


def test_liveness_threshold_must_exceed_ping_period() -> None:
    """A threshold shorter than the probe interval would flap devices inactive."""
    with pytest.raises(ValidationError):
        Settings(liveness_threshold_seconds=30)


def test_explicit_config_file(tmp_path: Path) -> None:
    """WATCHTOWER_CONFIG_FILE points at a YAML file outside the package."""
    config_file = tmp_path / "prod.yaml"
    config_file.write_text("base_url: https://tower.example\nws_queue_size: 64\n")
    env = {"WATCHTOWER_CONFIG_FILE": str(config_file)}
    with patch.dict("os.environ", env, clear=False):
        s = ConfigLoader.load_settings()
    assert s.base_url == "https://tower.example"
    assert s.ws_queue_size == 64


def test_unknown_yaml_keys_are_ignored(
    tmp_path: Path, caplog: pytest.LogCaptureFixture,
) -> None:
    config_file = tmp_path / "typo.yaml"
    config_file.write_text("log_levle: DEBUG\nlog_level: ERROR\n")
    with patch.dict("os.environ", {"WATCHTOWER_CONFIG_FILE": str(config_file)}, clear=False):
        s = ConfigLoader.load_settings()
    assert s.log_level == "ERROR"
    assert "log_levle" in caplog.text


def test_non_mapping_yaml_is_rejected(tmp_path: Path) -> None:
    config_file = tmp_path / "list.yaml"
    config_file.write_text("- a\n- b\n")
    with pytest.raises(ValueError):
        ConfigLoader.read_yaml(config_file)
