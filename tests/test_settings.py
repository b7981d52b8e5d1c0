"""Tests for configuration settings."""
import pytest
from pydantic import ValidationError

from config.settings import Settings

pytestmark = pytest.mark.unit


def test_search_defaults(monkeypatch):
    """Windows default to five years and queries are spaced one second apart."""
    for var in ("MAILMATCH_SEARCH_WINDOW_YEARS", "MAILMATCH_CALENDAR_WINDOW_YEARS", "MAILMATCH_QUERY_SPACING"):
        monkeypatch.delenv(var, raising=False)
    settings = Settings(_env_file=None)

    assert settings.search_window_years == 5
    assert settings.calendar_window_years == 5
    assert settings.query_spacing_seconds == 1.0
    assert settings.max_threads_per_query == 50


def test_env_aliases(monkeypatch):
    """Settings should read MAILMATCH_* environment variables."""
    monkeypatch.setenv("MAILMATCH_SEARCH_WINDOW_YEARS", "3")
    monkeypatch.setenv("MAILMATCH_SPREADSHEET_ID", "abc123")
    monkeypatch.setenv("MAILMATCH_NAME_COLUMN", "C")

    settings = Settings(_env_file=None)

    assert settings.search_window_years == 3
    assert settings.spreadsheet_id == "abc123"
    assert settings.name_column == "C"


def test_self_aliases_parsing():
    """Comma-separated aliases become a lowercase list."""
    settings = Settings(_env_file=None, self_aliases_raw=" Me@Work.com, ,me@home.org ")
    assert settings.self_aliases == ["me@work.com", "me@home.org"]
    assert Settings(_env_file=None, self_aliases_raw="").self_aliases == []


def test_sheet_enabled():
    assert Settings(_env_file=None, spreadsheet_id="").sheet_enabled is False
    assert Settings(_env_file=None, spreadsheet_id="abc").sheet_enabled is True


def test_rejects_bad_values():
    """Windows must be at least a year and the name column a single letter."""
    with pytest.raises(ValidationError):
        Settings(_env_file=None, search_window_years=0)
    with pytest.raises(ValidationError):
        Settings(_env_file=None, name_column="AA")


def test_bounce_defaults(monkeypatch):
    """Bounce scans look back one day and record into the Bounced tab."""
    for var in ("MAILMATCH_BOUNCE_SHEET_NAME", "MAILMATCH_BOUNCE_SCAN_DAYS", "MAILMATCH_MAX_BOUNCE_THREADS"):
        monkeypatch.delenv(var, raising=False)
    settings = Settings(_env_file=None)

    assert settings.bounce_sheet_name == "Bounced"
    assert settings.bounce_scan_days == 1
    assert settings.max_bounce_threads == 500


def test_bounce_env_aliases(monkeypatch):
    monkeypatch.setenv("MAILMATCH_BOUNCE_SHEET_NAME", "Hard bounces")
    monkeypatch.setenv("MAILMATCH_BOUNCE_SCAN_DAYS", "7")

    settings = Settings(_env_file=None)

    assert settings.bounce_sheet_name == "Hard bounces"
    assert settings.bounce_scan_days == 7
    with pytest.raises(ValidationError):
        Settings(_env_file=None, bounce_scan_days=0)


def test_exclude_self_addresses(monkeypatch):
    """Own addresses are excluded unless MAILMATCH_EXCLUDE_SELF turns it off."""
    monkeypatch.delenv("MAILMATCH_EXCLUDE_SELF", raising=False)
    assert Settings(_env_file=None).exclude_self_addresses is True

    monkeypatch.setenv("MAILMATCH_EXCLUDE_SELF", "false")
    assert Settings(_env_file=None).exclude_self_addresses is False
