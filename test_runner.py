"""Tests for per-run wiring: client construction failures and Slack notices."""

import pytest
from google.auth.exceptions import RefreshError

from calsync import runner
from calsync.config import load_settings
from calsync.errors import SetupError


@pytest.fixture
def settings(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("NOTION_TOKEN", "secret")
    monkeypatch.setenv("NOTION_DATABASE_ID", "db123")
    monkeypatch.setenv("GOOGLE_CALENDAR_ID", "primary")
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "mirror.sqlite"))
    monkeypatch.delenv("NOTION_PROPERTY_MAP", raising=False)
    return load_settings()


@pytest.fixture
def failure_notices(monkeypatch):
    notices = []
    monkeypatch.setattr(runner.SlackNotifier, "send_run_failed",
                        lambda self, error: notices.append(str(error)) or True)
    return notices


def _refuse_credentials(settings):
    raise RefreshError("invalid_grant: Token has been expired or revoked.")


def test_calendar_build_failure_becomes_setup_error(monkeypatch, settings):
    monkeypatch.setattr(runner.GoogleCalendarProvider, "from_settings", staticmethod(_refuse_credentials))
    mirror = runner.open_mirror_store(settings)

    with pytest.raises(SetupError, match="Google Calendar service"):
        runner.build_reconciler(settings, mirror)


def test_run_once_reports_calendar_build_failure(monkeypatch, settings, failure_notices):
    monkeypatch.setattr(runner.GoogleCalendarProvider, "from_settings", staticmethod(_refuse_credentials))

    with pytest.raises(SetupError):
        runner.run_once(settings)

    assert len(failure_notices) == 1
    assert "invalid_grant" in failure_notices[0]
