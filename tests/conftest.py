"""
Pytest configuration and shared fixtures for mailmatch tests.

Test Categories:
- unit: Fast tests with no external dependencies (< 100ms each)
- slow: API tests through TestClient
- integration: Tests requiring real Google credentials

Run categories:
- pytest -m unit              # Fast unit tests only
- pytest -m "not integration" # Skip integration tests
- pytest                      # All tests
"""
import pytest


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "slow: Tests that start the FastAPI app")
    config.addinivalue_line("markers", "integration: Integration tests (Google credentials required)")


@pytest.fixture(autouse=True)
def reset_singletons_after_test():
    """Drop cached services so mocks never leak between tests."""
    yield
    from tests.reset_singletons import reset_all_singletons
    reset_all_singletons()


@pytest.fixture
def now():
    """Fixed clock value used by resolver tests."""
    from tests.fixtures.mail_fakes import NOW
    return NOW


@pytest.fixture
def make_resolver(now):
    """
    Factory for an EmailResolver over in-memory searches.

    Usage:
        resolver = make_resolver(FakeMessageSearch(...), FakeCalendarSearch(...))
    """
    from api.services.email_resolver import EmailResolver, ResolverContext
    from api.services.rate_limiter import RateLimiter
    from tests.fixtures.mail_fakes import OWNER

    def _make(message_search, calendar_search=None, self_addresses=(OWNER,)):
        context = ResolverContext(
            message_search=message_search,
            calendar_search=calendar_search,
            self_addresses=frozenset(self_addresses),
            rate_limiter=RateLimiter(0.0),
            clock=lambda: now,
        )
        return EmailResolver(context)

    return _make


@pytest.fixture(scope="function")
def mock_settings(tmp_path, monkeypatch):
    """
    Mock settings for testing.

    Uses a temporary Google config directory to avoid touching real tokens.
    """
    from config.settings import Settings

    mock = Settings(
        google_config_dir=tmp_path,
        spreadsheet_id="sheet123",
        sheet_name="Names",
    )

    # Patch the global settings
    monkeypatch.setattr("config.settings.settings", mock)
    return mock
