"""Tests for settings loading and property map validation."""

import pytest

import sync
from calsync.config import (
    DEFAULT_PROPERTY_MAP, load_settings, parse_property_map, validate_property_map,
)
from calsync.errors import ConfigError

REQUIRED_ENV = {
    "NOTION_TOKEN": "secret",
    "NOTION_DATABASE_ID": "db123",
    "GOOGLE_CALENDAR_ID": "cal@group.calendar.google.com",
}

OPTIONAL_ENV = (
    "NOTION_PROPERTY_MAP", "NOTION_STATUS_PROPERTY_TYPE", "CALENDAR_CALL_DELAY_MS",
    "ARCHIVE_AFTER_DAYS", "SYNC_LOOKBACK_DAYS", "ADOPT_CONFLICTING_EVENTS", "LOG_PATH",
    "DATABASE_PATH", "SLACK_WEBHOOK_URL",
)


@pytest.fixture
def env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in OPTIONAL_ENV:
        monkeypatch.delenv(name, raising=False)
    for name, value in REQUIRED_ENV.items():
        monkeypatch.setenv(name, value)
    return monkeypatch


def test_defaults(env):
    settings = load_settings()

    assert settings.calendar_call_delay == 0.05
    assert settings.archive_after_days == 3
    assert settings.adopt_conflicting_events is False
    assert settings.property_map == DEFAULT_PROPERTY_MAP
    assert settings.database_url == "sqlite:///database.sqlite"
    assert settings.log_path is None


def test_overrides(env):
    env.setenv("CALENDAR_CALL_DELAY_MS", "200")
    env.setenv("ADOPT_CONFLICTING_EVENTS", "yes")
    env.setenv("NOTION_PROPERTY_MAP", "title=Name; category=Course")

    settings = load_settings()

    assert settings.calendar_call_delay == 0.2
    assert settings.adopt_conflicting_events is True
    lookup = dict(settings.property_map)
    assert lookup["title"] == "Name"
    assert lookup["category"] == "Course"
    assert [name for name, _ in settings.property_map][:2] == ["title", "status"]


def test_missing_required_settings(env):
    env.delenv("NOTION_TOKEN")
    with pytest.raises(ConfigError, match="NOTION_TOKEN"):
        load_settings()


def test_invalid_integer(env):
    env.setenv("ARCHIVE_AFTER_DAYS", "three")
    with pytest.raises(ConfigError):
        load_settings()


def test_unknown_logical_name_rejected():
    with pytest.raises(ConfigError):
        validate_property_map(parse_property_map("colour=Colour"))


def test_required_mapping_cannot_be_blank():
    with pytest.raises(ConfigError):
        validate_property_map(parse_property_map("date="))


def test_duplicate_mapping_rejected():
    with pytest.raises(ConfigError):
        validate_property_map(DEFAULT_PROPERTY_MAP + (("title", "Other"),))


def test_malformed_override_rejected():
    with pytest.raises(ConfigError):
        parse_property_map("title")


def test_cli_exits_nonzero_on_bad_config(env):
    env.delenv("GOOGLE_CALENDAR_ID")
    assert sync.main([]) == 1
