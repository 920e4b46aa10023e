from datetime import timedelta

import pytest

from swaptitude.core.phase_controller import ControllerTimings
from swaptitude.utils.config import ConfigManager, SessionSettings, Settings
from swaptitude.utils.exceptions import ConfigError


@pytest.fixture
def manager(monkeypatch, tmp_path):
    manager = ConfigManager()
    monkeypatch.setattr(manager, "settings_path", tmp_path / "settings.yaml")
    monkeypatch.setattr(manager, "_settings", None)
    return manager


def test_load_settings_with_env_substitution(manager, monkeypatch):
    monkeypatch.setenv("ONBOARDING_DISMISSAL_SCOPE", "account")
    manager.settings_path.write_text(
        "session:\n"
        "  fallback_after_seconds: 2\n"
        "  force_logout_after_seconds: 6\n"
        "onboarding:\n"
        "  dismissal_scope: ${ONBOARDING_DISMISSAL_SCOPE:session}\n"
        "logging:\n"
        "  level: ${SWAPTITUDE_TEST_UNSET_LEVEL:DEBUG}\n",
        encoding="utf-8",
    )

    settings = manager.load_settings()

    assert settings.session.fallback_after_seconds == 2
    assert settings.session.force_logout_after_seconds == 6
    assert settings.session.missing_profile_grace_seconds == 3.0
    assert settings.onboarding.dismissal_scope == "account"
    assert settings.logging.level == "DEBUG"
    assert manager.get_settings() is settings


def test_missing_settings_file_raises(manager):
    with pytest.raises(ConfigError, match="Settings file not found"):
        manager.load_settings()


def test_logout_timeout_must_exceed_fallback(manager):
    manager.settings_path.write_text(
        "session:\n  fallback_after_seconds: 10\n  force_logout_after_seconds: 5\n",
        encoding="utf-8",
    )
    with pytest.raises(ConfigError, match="Invalid settings"):
        manager.load_settings()


def test_grace_window_must_be_positive_or_null():
    assert SessionSettings(missing_profile_grace_seconds=None).missing_profile_grace_seconds is None
    with pytest.raises(ValueError):
        SessionSettings(missing_profile_grace_seconds=0)


def test_save_and_reload_settings(manager):
    settings = Settings()
    settings.onboarding.dismissal_scope = "account"
    manager.save_settings(settings)

    manager._settings = None
    reloaded = manager.load_settings()
    assert reloaded.onboarding.dismissal_scope == "account"
    assert reloaded.session == settings.session


def test_controller_timings_from_settings():
    session = SessionSettings(
        fallback_after_seconds=4,
        force_logout_after_seconds=8,
        missing_profile_grace_seconds=None,
        new_account_window_minutes=2,
        transition_history_limit=20,
    )
    timings = ControllerTimings.from_settings(session)

    assert timings.fallback_after_seconds == 4
    assert timings.force_logout_after_seconds == 8
    assert timings.missing_profile_grace_seconds is None
    assert timings.new_account_window == timedelta(minutes=2)
    assert timings.history_limit == 20
