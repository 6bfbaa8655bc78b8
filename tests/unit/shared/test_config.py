"""
Tests for configuration loading.
"""

import pytest

from ccis.shared import config as config_module
from ccis.shared.config import CCISSettings, SessionConfig


def test_defaults():
    settings = CCISSettings()

    assert settings.scoring.level_2_threshold == 0.25
    assert settings.scoring.level_4_threshold == 0.85
    assert settings.session.min_signals_for_completion == 5
    assert settings.session.max_duration_limit_minutes == 240


def test_load_from_yaml(tmp_path):
    """Test that YAML values and level shorthand are applied."""
    config_path = tmp_path / "ccis.yaml"
    config_path.write_text(
        "ccis:\n"
        "  log_level: DEBUG\n"
        "  scoring:\n"
        "    levels:\n"
        "      2: 0.3\n"
        "      3: 0.6\n"
        "      4: 0.9\n"
        "  session:\n"
        "    min_signals_for_completion: 3\n"
        "    max_duration_limit_minutes: 120\n"
    )

    settings = CCISSettings.load_from_yaml(config_path)

    assert settings.log_level == "DEBUG"
    assert settings.scoring.level_2_threshold == 0.3
    assert settings.scoring.level_4_threshold == 0.9
    assert settings.session.min_signals_for_completion == 3
    assert settings.session.max_duration_limit_minutes == 120
    assert settings.session.pattern_window == 5


def test_missing_yaml_uses_defaults(tmp_path):
    settings = CCISSettings.load_from_yaml(tmp_path / "absent.yaml")

    assert settings.session.min_completion_confidence == 0.3


def test_invalid_level_order_in_yaml(tmp_path):
    config_path = tmp_path / "ccis.yaml"
    config_path.write_text(
        "ccis:\n"
        "  scoring:\n"
        "    levels:\n"
        "      2: 0.7\n"
        "      3: 0.6\n"
    )

    with pytest.raises(ValueError):
        CCISSettings.load_from_yaml(config_path)


def test_session_env_override(monkeypatch):
    monkeypatch.setenv("SESSION_MIN_SIGNALS_FOR_COMPLETION", "8")
    monkeypatch.setenv("SESSION_MAX_DURATION_LIMIT", "90")

    session = SessionConfig()

    assert session.min_signals_for_completion == 8
    assert session.max_duration_limit_minutes == 90


def test_get_settings_is_cached(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    config_module.reset_settings()
    try:
        first = config_module.get_settings()
        assert config_module.get_settings() is first
    finally:
        config_module.reset_settings()
