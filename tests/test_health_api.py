"""
API tests for health, readiness and liveness probes.
"""
import pytest
import httpx
from unittest.mock import AsyncMock, MagicMock, patch

from app.core.config import settings

PREFIX = f"{settings.API_V1_PREFIX}/health"


@pytest.fixture
def configured():
    mock = MagicMock()
    mock.SUPABASE_URL = "https://project.supabase.co"
    mock.SUPABASE_KEY = "anon"
    mock.SUPABASE_SERVICE_KEY = "service"
    mock.N8N_BASE_URL = "https://n8n.example.com"
    mock.N8N_API_KEY = "key"
    with patch("app.api.endpoints.health.settings", mock):
        yield mock


@pytest.fixture
def dependencies(mock_db_service, mock_n8n_client):
    with patch("app.api.endpoints.health.db_service", mock_db_service), \
            patch("app.api.endpoints.health.n8n_client", mock_n8n_client):
        yield mock_db_service, mock_n8n_client


class TestHealthEndpoint:

    @pytest.mark.api
    def test_all_healthy(self, client, configured, dependencies):
        response = client.get(PREFIX)

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["supabase"] == {"status": "healthy"}
        assert data["n8n"] == {"status": "healthy"}
        assert all(data["env"].values())
        assert "timestamp" in data

    @pytest.mark.api
    def test_supabase_down(self, client, configured, dependencies):
        db, _ = dependencies
        db.ping.side_effect = RuntimeError("connection refused")

        response = client.get(PREFIX)

        assert response.status_code == 503
        assert response.json()["supabase"] == {"status": "unhealthy", "error": "connection refused"}

    @pytest.mark.api
    def test_n8n_down(self, client, configured, dependencies):
        _, n8n = dependencies
        n8n.health_check.side_effect = httpx.ConnectError("unreachable")

        response = client.get(PREFIX)

        assert response.status_code == 503
        assert response.json()["n8n"]["status"] == "unhealthy"

    @pytest.mark.api
    def test_missing_settings_are_reported_without_values(self, client, configured, dependencies):
        configured.N8N_API_KEY = ""

        response = client.get(PREFIX)

        assert response.status_code == 503
        assert response.json()["env"]["N8N_API_KEY"] is False
        assert response.json()["env"]["SUPABASE_URL"] is True

    @pytest.mark.api
    def test_unconfigured_supabase_is_not_pinged(self, client, configured, dependencies):
        db, _ = dependencies
        configured.SUPABASE_URL = ""

        response = client.get(PREFIX)

        assert response.json()["supabase"] == {"status": "unhealthy", "error": "SUPABASE_URL not configured"}
        db.ping.assert_not_awaited()


class TestProbes:

    @pytest.mark.api
    def test_ready(self, client, configured, dependencies):
        response = client.get(f"{PREFIX}/ready")

        assert response.status_code == 200
        assert response.json()["ready"] is True

    @pytest.mark.api
    def test_not_ready(self, client, configured, dependencies):
        _, n8n = dependencies
        n8n.health_check.side_effect = httpx.ConnectError("unreachable")

        response = client.get(f"{PREFIX}/ready")

        assert response.status_code == 503
        assert response.json()["ready"] is False
        assert response.json()["error"] == "unreachable"

    @pytest.mark.api
    def test_live(self, client):
        response = client.get(f"{PREFIX}/live")

        assert response.status_code == 200
        assert response.json()["alive"] is True


@pytest.mark.api
def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["message"] == "BSM Automation API"
