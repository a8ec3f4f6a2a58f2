"""Tests for configuration loading and validation."""

import pytest

from taskhub.core.config import Constants, Settings


def test_defaults() -> None:
    """Test settings defaults match the documented behavior."""
    settings = Settings(_env_file=None)

    assert settings.retention_days == 7
    assert settings.index_expiration_days == 30
    assert settings.badge_debounce_seconds == 0.5
    assert settings.badge_cache_ttl_seconds == 30.0
    assert settings.category_cache_ttl_seconds == 5.0
    assert settings.badge_enabled is True
    assert settings.reminder_title == "Task Reminder"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test settings are read from case-insensitive environment variables."""
    monkeypatch.setenv("RETENTION_DAYS", "14")
    monkeypatch.setenv("badge_enabled", "false")

    settings = Settings(_env_file=None)

    assert settings.retention_days == 14
    assert settings.badge_enabled is False


def test_ranking_constants_are_ordered() -> None:
    c = Constants()

    assert c.RANKING_OVERDUE > c.RANKING_DUE_TODAY > c.RANKING_PENDING > c.RANKING_DEFAULT > c.RANKING_COMPLETED
