from __future__ import annotations

import logging

from nzbforge.config import DEFAULT_DATABASE_URL, Settings


def test_defaults(monkeypatch) -> None:
    for name in ("DATABASE_URL", "COMPLETION_THRESHOLD", "DB_ECHO", "SCHEDULE_INTERVAL_SECONDS"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings()
    assert settings.database_url == DEFAULT_DATABASE_URL
    assert settings.completion_threshold == 100
    assert settings.db_echo is False
    assert settings.schedule_interval_seconds == 300


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "postgres://db/idx")
    monkeypatch.setenv("COMPLETION_THRESHOLD", "95")
    monkeypatch.setenv("DB_ECHO", "1")
    settings = Settings()
    assert settings.database_url == "postgres://db/idx"
    assert settings.completion_threshold == 95
    assert settings.db_echo is True


def test_invalid_threshold_falls_back(monkeypatch, caplog) -> None:
    monkeypatch.setenv("COMPLETION_THRESHOLD", "lots")
    with caplog.at_level(logging.WARNING):
        assert Settings().completion_threshold == 100
    assert "COMPLETION_THRESHOLD" in caplog.text

    monkeypatch.setenv("COMPLETION_THRESHOLD", "0")
    assert Settings().completion_threshold == 100


def test_reload_picks_up_changes(monkeypatch) -> None:
    monkeypatch.setenv("COMPLETION_THRESHOLD", "90")
    settings = Settings()
    monkeypatch.setenv("COMPLETION_THRESHOLD", "80")
    settings.reload()
    assert settings.completion_threshold == 80
