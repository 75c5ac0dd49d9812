"""
Pytest fixtures for Biohacker API tests.

Provides mock implementations for all external services,
enabling tests to run entirely in-memory without network calls.
"""

import pytest
import pytest_asyncio
from typing import AsyncIterator
from datetime import date, datetime, timedelta, timezone

from httpx import AsyncClient, ASGITransport

from biohacker.models.documents import (
    CalendarConnection, Cycle, RecurrenceRule, SyncStatus
)
from biohacker.tests.mocks import (
    MockDatabase, MockLLMClient, MockOAuthClient, MockCalendarClient
)

TEST_USER_ID = "test-user-123"

# Fixed "now" for clock-injected services
NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


# ============================================================================
# Mock Service Fixtures
# ============================================================================


@pytest.fixture
def mock_db() -> MockDatabase:
    """Create a fresh mock database instance."""
    return MockDatabase()


@pytest.fixture
def mock_llm() -> MockLLMClient:
    """Create a fresh mock LLM client instance."""
    return MockLLMClient()


@pytest.fixture
def mock_oauth() -> MockOAuthClient:
    return MockOAuthClient()


@pytest.fixture
def mock_calendar() -> MockCalendarClient:
    return MockCalendarClient()


@pytest.fixture
def clock():
    return lambda: NOW


# ============================================================================
# Application Fixtures with Dependency Override
# ============================================================================


@pytest_asyncio.fixture
async def app_with_mocks(
    mock_db: MockDatabase,
    mock_llm: MockLLMClient,
    mock_oauth: MockOAuthClient,
    mock_calendar: MockCalendarClient,
):
    """
    Create FastAPI app with all dependencies mocked.

    Uses the setter functions in deps.py to inject mock implementations.
    """
    from biohacker import deps
    from biohacker.main import app

    # Reset state before test
    deps.reset_for_testing()

    # Inject mocks using the setter functions
    deps.set_database(mock_db)
    deps.set_llm_client(mock_llm)
    deps.set_calendar_clients(mock_oauth, mock_calendar)

    yield app, mock_db

    # Reset state after test
    deps.reset_for_testing()


@pytest_asyncio.fixture
async def client(app_with_mocks) -> AsyncIterator[AsyncClient]:
    """
    Create an async HTTP client for testing API endpoints.

    Usage:
        async def test_endpoint(client):
            response = await client.get("/health")
            assert response.status_code == 200
    """
    app, mock_db = app_with_mocks

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers() -> dict:
    """Master key plus the signed-in user's id, as the frontend proxy sends."""
    from biohacker.deps import get_settings

    return {
        "X-API-Key": get_settings().master_api_key,
        "X-User-Id": TEST_USER_ID,
    }


# ============================================================================
# Test Data Fixtures
# ============================================================================


@pytest.fixture
def sample_cycle() -> Cycle:
    """Active daily cycle spanning the fixed test date."""
    return Cycle(
        cycle_id="cycle-123",
        user_id=TEST_USER_ID,
        name="Recovery stack",
        peptide_name="BPC-157",
        dose_amount="250mcg",
        start_date=TODAY - timedelta(days=3),
        end_date=TODAY + timedelta(days=4),
        frequency=RecurrenceRule(type="daily", times=1),
    )


@pytest.fixture
def valid_connection() -> CalendarConnection:
    """Connection whose token is good for another hour."""
    return CalendarConnection(
        user_id=TEST_USER_ID,
        access_token="valid-access-token",
        refresh_token="stored-refresh-token",
        token_expiry=NOW + timedelta(hours=1),
        calendar_email="user@example.com",
        sync_status=SyncStatus.ACTIVE,
    )


@pytest.fixture
def expired_connection() -> CalendarConnection:
    """Connection whose token expired a minute ago."""
    return CalendarConnection(
        user_id=TEST_USER_ID,
        access_token="stale-access-token",
        refresh_token="stored-refresh-token",
        token_expiry=NOW - timedelta(minutes=1),
        calendar_email="user@example.com",
        sync_status=SyncStatus.SUCCESS,
    )


def make_cycle(**overrides) -> Cycle:
    """Cycle with sensible defaults for ad-hoc test cases."""
    fields = {
        "user_id": TEST_USER_ID,
        "peptide_name": "BPC-157",
        "dose_amount": "250mcg",
        "start_date": date(2024, 1, 1),
        "end_date": date(2024, 1, 7),
    }
    fields.update(overrides)
    return Cycle(**fields)
