"""
Unit tests for the N8N API client.
"""
import json

import pytest
import httpx
import respx
from unittest.mock import patch

from app.services.n8n_client import N8NClient, format_execution_time, get_workflow_tags
from tests.testkit import N8nHttpMock, N8nResponseFactory

BASE_URL = "https://n8n.example.com"


@pytest.fixture
def client():
    return N8NClient(base_url=BASE_URL, api_key="test-key", webhook_url="", webhook_test_url="")


@pytest.fixture
def http_mock():
    with N8nHttpMock(BASE_URL) as mock:
        yield mock


class TestN8NClientInit:
    """Tests for N8NClient initialization."""

    @pytest.mark.unit
    def test_init_with_explicit_params(self):
        """Should accept explicit base_url and api_key."""
        client = N8NClient(base_url="https://custom.n8n.io/", api_key="custom-key")

        assert client.base_url == "https://custom.n8n.io"
        assert client.api_key == "custom-key"
        assert client.api_url == "https://custom.n8n.io/api/v1"

    @pytest.mark.unit
    def test_init_sets_headers(self):
        """Should set proper headers with API key."""
        client = N8NClient(base_url="https://n8n.io", api_key="test-key")

        assert client.headers["X-N8N-API-KEY"] == "test-key"
        assert client.headers["Content-Type"] == "application/json"

    @pytest.mark.unit
    def test_init_falls_back_to_settings(self):
        """Should fall back to settings when params not provided."""
        with patch("app.services.n8n_client.settings") as mock_settings:
            mock_settings.N8N_BASE_URL = "https://settings.n8n.io"
            mock_settings.N8N_API_KEY = "settings-key"
            mock_settings.N8N_WEBHOOK_URL = "https://hooks.n8n.io/webhook/"
            mock_settings.N8N_WEBHOOK_TEST_URL = ""
            mock_settings.N8N_TIMEOUT_SECONDS = 5.0

            client = N8NClient()

        assert client.base_url == "https://settings.n8n.io"
        assert client.api_key == "settings-key"
        assert client.webhook_url == "https://hooks.n8n.io/webhook"
        assert client.timeout == 5.0


class TestApiCalls:
    """Tests for REST API methods."""

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_get_workflows_returns_list(self, client, http_mock):
        route = http_mock.mock_get_workflows([{"id": "wf-1"}, {"id": "wf-2"}])

        result = await client.get_workflows()

        assert [w["id"] for w in result] == ["wf-1", "wf-2"]
        assert route.calls.last.request.headers["X-N8N-API-KEY"] == "test-key"

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_get_workflows_handles_array_response(self, client):
        with respx.mock:
            respx.get(f"{BASE_URL}/api/v1/workflows").mock(
                return_value=httpx.Response(200, json=[{"id": "wf-1"}])
            )

            result = await client.get_workflows()

        assert result == [{"id": "wf-1"}]

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_get_workflow_404_raises(self, client, http_mock):
        http_mock.mock_error("GET", "/workflows/missing", 404)

        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            await client.get_workflow("missing")

        assert exc_info.value.response.status_code == 404

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_get_executions_sends_filters(self, client, http_mock):
        route = http_mock.mock_get_executions()

        result = await client.get_executions("wf-simple", limit=5)

        assert len(result) == 3
        params = route.calls.last.request.url.params
        assert params["limit"] == "5"
        assert params["workflowId"] == "wf-simple"

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_get_executions_without_workflow_filter(self, client, http_mock):
        route = http_mock.mock_get_executions([])

        await client.get_executions()

        assert "workflowId" not in route.calls.last.request.url.params

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_get_execution_include_data(self, client, http_mock):
        route = http_mock.mock_get_execution("201")

        result = await client.get_execution("201", include_data=True)

        assert result["id"] == "201"
        assert route.calls.last.request.url.params["includeData"] == "true"

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_execute_workflow_wraps_input(self, client, http_mock):
        route = http_mock.mock_execute_workflow("wf-1", {"id": "e-1"})

        result = await client.execute_workflow("wf-1", {"a": 1})

        assert result == {"id": "e-1"}
        assert json.loads(route.calls.last.request.content) == {"data": {"a": 1}}

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_toggle_workflow(self, client, http_mock):
        activate = http_mock.router.post(f"{BASE_URL}/api/v1/workflows/wf-1/activate").mock(
            return_value=httpx.Response(200, json={"id": "wf-1", "active": True})
        )
        deactivate = http_mock.router.post(f"{BASE_URL}/api/v1/workflows/wf-1/deactivate").mock(
            return_value=httpx.Response(200, json={"id": "wf-1", "active": False})
        )

        assert (await client.toggle_workflow("wf-1", True))["active"] is True
        assert (await client.toggle_workflow("wf-1", False))["active"] is False
        assert activate.call_count == 1
        assert deactivate.call_count == 1

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_stop_execution_reports_failure(self, client, http_mock):
        http_mock.mock_stop_execution("1")
        http_mock.mock_stop_execution("2", status_code=409)

        assert await client.stop_execution("1") is True
        assert await client.stop_execution("2") is False

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_stop_execution_network_error(self, client):
        with respx.mock:
            respx.post(f"{BASE_URL}/api/v1/executions/1/stop").mock(side_effect=httpx.ConnectError("down"))

            assert await client.stop_execution("1") is False

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_get_credentials_forbidden_returns_empty(self, client, http_mock):
        http_mock.mock_error("GET", "/credentials", 403)

        assert await client.get_credentials() == []

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_get_credentials_server_error_raises(self, client, http_mock):
        http_mock.mock_error("GET", "/credentials", 500)

        with pytest.raises(httpx.HTTPStatusError):
            await client.get_credentials()

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_workflow_stats(self, client, http_mock):
        http_mock.mock_get_executions([
            {**N8nResponseFactory.execution("1"), "executionTime": 300},
            {**N8nResponseFactory.execution("2", status="error"), "executionTime": 100},
        ])

        stats = await client.get_workflow_stats("wf-simple")

        assert stats["total_executions"] == 2
        assert stats["successful_executions"] == 1
        assert stats["failed_executions"] == 1
        assert stats["average_execution_time"] == 200
        assert stats["last_execution"] == "2024-01-15T09:58:00.000Z"

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_connection_checks(self, client, http_mock):
        http_mock.mock_get_workflows([])

        assert await client.health_check() == {"status": "healthy", "version": "connected"}
        assert await client.test_connection() is True

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_connection_fails_on_unauthorized(self, client, http_mock):
        http_mock.mock_error("GET", "/workflows", 401)

        assert await client.test_connection() is False


class TestWebhooks:
    """Tests for webhook base selection and 404 fallbacks."""

    @pytest.mark.unit
    def test_bases_follow_active_flag(self, client):
        assert client.webhook_bases(True) == (f"{BASE_URL}/webhook", f"{BASE_URL}/webhook-test")
        assert client.webhook_bases(False) == (f"{BASE_URL}/webhook-test", f"{BASE_URL}/webhook")

    @pytest.mark.unit
    def test_configured_bases_win(self):
        client = N8NClient(
            base_url=BASE_URL,
            api_key="k",
            webhook_url="https://hooks.example.com/live/",
            webhook_test_url="https://hooks.example.com/test",
        )

        assert client.webhook_candidate_urls("abc", True) == [
            "https://hooks.example.com/live/abc",
            "https://hooks.example.com/live/abc/chat",
            "https://hooks.example.com/test/abc",
            "https://hooks.example.com/test/abc/chat",
        ]

    @pytest.mark.unit
    def test_missing_bases_raise(self):
        client = N8NClient(base_url=BASE_URL, api_key="k", webhook_url="", webhook_test_url="")
        client.base_url = ""

        with pytest.raises(ValueError):
            client.webhook_bases(True)

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_call_webhook_hits_chosen_base(self, client, http_mock):
        route = http_mock.mock_webhook("orders", {"ok": True})

        response = await client.call_webhook("orders", True, {"event": "x"})

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert json.loads(route.calls.last.request.content) == {"event": "x"}

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_call_webhook_walks_candidates_on_404(self, client, http_mock):
        http_mock.mock_webhook("abc", status_code=404)
        http_mock.router.post(f"{BASE_URL}/webhook/abc/chat").mock(return_value=httpx.Response(404))
        test_route = http_mock.mock_webhook("abc", {"reply": "hi"}, test=True)

        response = await client.call_webhook("abc", True, {"message": "hi"})

        assert response.status_code == 200
        assert test_route.called

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_call_webhook_returns_last_404(self, client, http_mock):
        for url in client.webhook_candidate_urls("gone", False):
            http_mock.router.post(url).mock(return_value=httpx.Response(404))

        response = await client.call_webhook("gone", False, {})

        assert response.status_code == 404

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_call_webhook_get_sends_no_body(self, client, http_mock):
        route = http_mock.mock_webhook("status", {"ok": True}, method="GET")

        await client.call_webhook("status", True, {"ignored": True}, method="get")

        assert route.calls.last.request.content == b""


class TestHelpers:
    """Tests for module-level helpers."""

    @pytest.mark.unit
    def test_format_execution_time(self):
        assert format_execution_time(250) == "250ms"
        assert format_execution_time(4200) == "4s"
        assert format_execution_time(125000) == "2m 5s"

    @pytest.mark.unit
    def test_workflow_tags_from_objects_and_name(self):
        workflow = {"name": "Customer Email Sync", "tags": [{"name": "crm"}, "legacy"]}

        assert get_workflow_tags(workflow) == ["crm", "legacy", "email"]
