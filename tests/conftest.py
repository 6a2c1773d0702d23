"""
Pytest fixtures for BSM Automation Backend tests.
"""
import pytest
from typing import Generator, Any, Dict
from unittest.mock import MagicMock, AsyncMock, patch
from datetime import datetime

from fastapi import FastAPI
from fastapi.testclient import TestClient

# Import the app
import sys
import os

# Add the parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.main import app
from app.services.auth_service import get_current_user
from app.services.n8n_client import n8n_client
from tests.testkit import N8nResponseFactory, N8nHttpMock


# ============ Fixtures ============

# Default test data
MOCK_ADMIN_ID = "00000000-0000-0000-0000-000000000001"
MOCK_EMPLOYEE_ID = "00000000-0000-0000-0000-000000000002"
MOCK_CUSTOMER_ID = "00000000-0000-0000-0000-000000000003"


def _profile(user_id: str, email: str, name: str, user_type: str) -> Dict[str, Any]:
    return {
        "id": user_id,
        "email": email,
        "full_name": name,
        "user_type": user_type,
        "is_active": True,
        "activation_required": False,
        "activated_at": datetime(2024, 1, 1).isoformat(),
    }


@pytest.fixture
def mock_admin_profile() -> Dict[str, Any]:
    """Default admin profile row from user_profiles."""
    return _profile(MOCK_ADMIN_ID, "admin@example.com", "Admin User", "admin")


@pytest.fixture
def mock_customer_profile() -> Dict[str, Any]:
    """Customer profile for permission testing."""
    return _profile(MOCK_CUSTOMER_ID, "customer@example.com", "Customer User", "customer")


def auth_user_from_profile(profile: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "user": {
            "id": profile["id"],
            "email": profile["email"],
            "name": profile["full_name"],
            "role": profile["user_type"],
        }
    }


@pytest.fixture
def mock_auth_user(mock_admin_profile: Dict[str, Any]) -> Dict[str, Any]:
    """Mock authenticated user response from get_current_user."""
    return auth_user_from_profile(mock_admin_profile)


@pytest.fixture
def mock_employee_user() -> Dict[str, Any]:
    return auth_user_from_profile(
        _profile(MOCK_EMPLOYEE_ID, "employee@example.com", "Employee User", "employee")
    )


@pytest.fixture
def mock_customer_user(mock_customer_profile: Dict[str, Any]) -> Dict[str, Any]:
    return auth_user_from_profile(mock_customer_profile)


@pytest.fixture
def mock_db_service(mock_admin_profile: Dict[str, Any]):
    """Create a mock database service."""
    mock = MagicMock()

    mock.get_profile = AsyncMock(return_value=mock_admin_profile)
    mock.create_activity_log = AsyncMock(return_value={"id": "log-1"})
    mock.get_activity_logs = AsyncMock(return_value=[])
    mock.ping = AsyncMock(return_value=True)

    return mock


@pytest.fixture
def mock_n8n_client():
    """Create a mock N8N API client."""
    mock = MagicMock()
    mock.base_url = "https://n8n.example.com"

    mock.get_workflows = AsyncMock(return_value=[])
    mock.get_workflow = AsyncMock(return_value=None)
    mock.activate_workflow = AsyncMock()
    mock.deactivate_workflow = AsyncMock()
    mock.execute_workflow = AsyncMock(return_value={"id": "exec-1", "status": "success"})

    mock.get_executions = AsyncMock(return_value=[])
    mock.get_execution = AsyncMock(return_value={})
    mock.get_execution_results = AsyncMock(return_value={})
    mock.stop_execution = AsyncMock(return_value=True)
    mock.call_webhook = AsyncMock()
    mock.health_check = AsyncMock(return_value={"status": "healthy", "version": "connected"})

    return mock


# ============ App and Client Fixtures ============


def create_auth_override(user_data: Dict[str, Any]):
    """Create an auth override function for testing."""
    async def mock_get_current_user(credentials=None):
        return user_data
    return mock_get_current_user


@pytest.fixture
def test_app(mock_auth_user: Dict[str, Any], mock_db_service) -> Generator[FastAPI, None, None]:
    """Create a test FastAPI app with auth overridden and the audit table mocked."""
    app.dependency_overrides[get_current_user] = create_auth_override(mock_auth_user)

    with patch("app.services.activity_logger.db_service", mock_db_service):
        yield app

    # Clean up overrides after test
    app.dependency_overrides.clear()


@pytest.fixture
def client(test_app: FastAPI) -> Generator[TestClient, None, None]:
    """Create a synchronous test client."""
    with TestClient(test_app) as c:
        yield c


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    """Bearer header for routes whose auth dependency is overridden."""
    return {"Authorization": "Bearer test-token"}


# ============ Time and Testkit Fixtures ============


@pytest.fixture
def frozen_time():
    """
    Fixture for time-based tests using freezegun.

    Usage:
        def test_something(frozen_time):
            with frozen_time.freeze_time("2024-01-15 10:00:00"):
                ...
    """
    import freezegun
    return freezegun


@pytest.fixture
def n8n_factory():
    """Provide the n8n response factory."""
    return N8nResponseFactory


@pytest.fixture
def n8n_mock() -> Generator[N8nHttpMock, None, None]:
    """HTTP mock for the globally configured n8n instance."""
    with N8nHttpMock(n8n_client.base_url) as mock:
        yield mock
