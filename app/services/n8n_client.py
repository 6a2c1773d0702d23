import httpx
import logging
from typing import List, Dict, Any, Optional, Tuple
from app.core.config import settings
from app.services.workflow_analyzer import round_half_up

logger = logging.getLogger(__name__)

# Webhook calls wait for "Respond to Webhook" nodes, which can take a while for AI agents
WEBHOOK_TIMEOUT_SECONDS = 60.0


def _parse_list(payload: Any) -> List[Dict[str, Any]]:
    """N8N v1 API returns {"data": [...]}; some versions return the array directly"""
    if isinstance(payload, dict):
        return payload.get("data", []) or []
    if isinstance(payload, list):
        return payload
    return []


class N8NClient:
    """Client for interacting with N8N API and workflow webhooks"""

    def __init__(
        self,
        base_url: str = None,
        api_key: str = None,
        webhook_url: str = None,
        webhook_test_url: str = None,
        timeout: float = None,
    ):
        self.base_url = (base_url or settings.N8N_BASE_URL or "").rstrip("/")
        self.api_key = api_key if api_key is not None else settings.N8N_API_KEY
        self.webhook_url = (webhook_url if webhook_url is not None else settings.N8N_WEBHOOK_URL or "").rstrip("/")
        self.webhook_test_url = (
            webhook_test_url if webhook_test_url is not None else settings.N8N_WEBHOOK_TEST_URL or ""
        ).rstrip("/")
        self.timeout = timeout or settings.N8N_TIMEOUT_SECONDS
        self.headers = {
            "X-N8N-API-KEY": self.api_key,
            "Content-Type": "application/json",
            "User-Agent": "BSM-Automation/1.0",
        }

    @property
    def api_url(self) -> str:
        return f"{self.base_url}/api/v1"

    async def get_workflows(self) -> List[Dict[str, Any]]:
        """Fetch all workflows from N8N"""
        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{self.api_url}/workflows",
                headers=self.headers,
                timeout=self.timeout
            )
            response.raise_for_status()
            return _parse_list(response.json())

    async def get_workflow(self, workflow_id: str) -> Dict[str, Any]:
        """Get a specific workflow by ID, including nodes and connections"""
        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{self.api_url}/workflows/{workflow_id}",
                headers=self.headers,
                timeout=self.timeout
            )
            response.raise_for_status()
            return response.json()

    async def activate_workflow(self, workflow_id: str) -> Dict[str, Any]:
        """Activate a workflow"""
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{self.api_url}/workflows/{workflow_id}/activate",
                headers=self.headers,
                timeout=self.timeout
            )
            response.raise_for_status()
            return response.json()

    async def deactivate_workflow(self, workflow_id: str) -> Dict[str, Any]:
        """Deactivate a workflow"""
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{self.api_url}/workflows/{workflow_id}/deactivate",
                headers=self.headers,
                timeout=self.timeout
            )
            response.raise_for_status()
            return response.json()

    async def toggle_workflow(self, workflow_id: str, active: bool) -> Dict[str, Any]:
        if active:
            return await self.activate_workflow(workflow_id)
        return await self.deactivate_workflow(workflow_id)

    async def execute_workflow(self, workflow_id: str, input_data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Execute a workflow manually through the API"""
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{self.api_url}/workflows/{workflow_id}/execute",
                headers=self.headers,
                json={"data": input_data or {}},
                timeout=self.timeout
            )
            response.raise_for_status()
            return response.json()

    async def get_executions(self, workflow_id: Optional[str] = None, limit: int = 20) -> List[Dict[str, Any]]:
        """Fetch executions from N8N, most recent first"""
        params: Dict[str, Any] = {"limit": limit}
        if workflow_id:
            params["workflowId"] = workflow_id

        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{self.api_url}/executions",
                headers=self.headers,
                params=params,
                timeout=self.timeout
            )
            response.raise_for_status()
            executions = _parse_list(response.json())
            logger.debug(f"Fetched {len(executions)} executions from N8N (workflow={workflow_id}, limit={limit})")
            return executions

    async def get_execution(self, execution_id: str, include_data: bool = False) -> Dict[str, Any]:
        """Get a single execution; include_data adds the node run data"""
        params = {"includeData": "true"} if include_data else None
        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{self.api_url}/executions/{execution_id}",
                headers=self.headers,
                params=params,
                timeout=self.timeout
            )
            response.raise_for_status()
            return response.json()

    async def get_execution_results(self, execution_id: str) -> Dict[str, Any]:
        """Fetch result data from the separate results endpoint some N8N versions expose"""
        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{self.api_url}/executions/{execution_id}/results",
                headers=self.headers,
                timeout=self.timeout
            )
            response.raise_for_status()
            return response.json()

    async def stop_execution(self, execution_id: str) -> bool:
        """Stop a running execution. Returns False if N8N refused or was unreachable."""
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    f"{self.api_url}/executions/{execution_id}/stop",
                    headers=self.headers,
                    timeout=self.timeout
                )
                return response.is_success
        except httpx.HTTPError as e:
            logger.error(f"Failed to stop execution {execution_id}: {str(e)}")
            return False

    async def get_credentials(self) -> List[Dict[str, Any]]:
        """Fetch credential metadata (admin use)"""
        async with httpx.AsyncClient() as client:
            try:
                response = await client.get(
                    f"{self.api_url}/credentials",
                    headers=self.headers,
                    timeout=self.timeout
                )
                response.raise_for_status()
                return _parse_list(response.json())
            except httpx.HTTPStatusError as e:
                if e.response.status_code in [401, 403, 404]:
                    logger.warning(f"N8N credentials API not available (status {e.response.status_code}). "
                                   "Check N8N API key permissions.")
                    return []
                raise

    async def get_workflow_stats(self, workflow_id: str) -> Dict[str, Any]:
        """Aggregate statistics over the last 100 executions of a workflow"""
        executions = await self.get_executions(workflow_id, limit=100)
        total = len(executions)
        execution_time = sum(e.get("executionTime") or 0 for e in executions)

        return {
            "total_executions": total,
            "successful_executions": len([e for e in executions if e.get("status") == "success"]),
            "failed_executions": len([e for e in executions if e.get("status") == "error"]),
            "average_execution_time": round_half_up(execution_time / max(total, 1)),
            "last_execution": executions[0].get("startedAt") if executions else None,
        }

    async def health_check(self) -> Dict[str, Any]:
        """Check that the API answers; raises on failure"""
        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{self.api_url}/workflows",
                headers=self.headers,
                params={"limit": 1},
                timeout=self.timeout
            )
            response.raise_for_status()
            return {"status": "healthy", "version": "connected"}

    async def test_connection(self) -> bool:
        """Test if the N8N instance is reachable and credentials are valid"""
        try:
            await self.health_check()
            return True
        except httpx.HTTPError:
            return False

    # Webhook operations

    def webhook_bases(self, active: bool) -> Tuple[str, str]:
        """
        Return (chosen, other) webhook base URLs.

        Active workflows answer on the live base, inactive ones only on the
        test base. Raises ValueError if neither base can be derived.
        """
        live = self.webhook_url or (f"{self.base_url}/webhook" if self.base_url else "")
        test = self.webhook_test_url or (f"{self.base_url}/webhook-test" if self.base_url else "")
        if not live and not test:
            raise ValueError(
                "N8N webhook base URLs not configured (set N8N_WEBHOOK_URL/N8N_WEBHOOK_TEST_URL or N8N_BASE_URL)"
            )

        chosen = live if active else test
        other = test if active else live
        if not chosen:
            chosen, other = other, ""
        return chosen, other

    def webhook_candidate_urls(self, path_or_id: str, active: bool) -> List[str]:
        """URLs to try in order: chosen base, its /chat variant, then the other base"""
        chosen, other = self.webhook_bases(active)
        urls = [f"{chosen}/{path_or_id}", f"{chosen}/{path_or_id}/chat"]
        if other:
            urls.extend([f"{other}/{path_or_id}", f"{other}/{path_or_id}/chat"])
        return urls

    async def call_webhook(
        self,
        path_or_id: str,
        active: bool,
        payload: Optional[Dict[str, Any]] = None,
        method: str = "POST",
        timeout: float = WEBHOOK_TIMEOUT_SECONDS,
    ) -> httpx.Response:
        """
        Call a workflow webhook, walking the candidate URLs while N8N answers 404.

        Returns the last response; callers decide how to treat non-2xx codes.
        """
        method = (method or "POST").upper()
        body = None if method == "GET" else payload
        response = None

        async with httpx.AsyncClient() as client:
            for url in self.webhook_candidate_urls(path_or_id, active):
                logger.info(f"Calling webhook: {method} {url}")
                response = await client.request(
                    method,
                    url,
                    json=body,
                    headers={"Content-Type": "application/json"},
                    timeout=timeout
                )
                if response.status_code != 404:
                    break

        return response


def format_execution_time(ms: float) -> str:
    """Format a duration in milliseconds for display"""
    if ms < 1000:
        return f"{round_half_up(ms)}ms"
    if ms < 60000:
        return f"{round_half_up(ms / 1000)}s"
    minutes = int(ms // 60000)
    seconds = round_half_up((ms % 60000) / 1000)
    return f"{minutes}m {seconds}s"


def get_workflow_tags(workflow: Dict[str, Any]) -> List[str]:
    """Workflow tags plus tags inferred from the workflow name, without duplicates"""
    tags: List[str] = []
    for tag in workflow.get("tags") or []:
        # N8N returns tag objects; older payloads use plain strings
        name = tag.get("name") if isinstance(tag, dict) else tag
        if name:
            tags.append(name)

    name = (workflow.get("name") or "").lower()
    if "customer" in name:
        tags.append("crm")
    if "email" in name:
        tags.append("email")
    if "slack" in name:
        tags.append("notifications")
    if "webhook" in name:
        tags.append("api")
    if "schedule" in name:
        tags.append("automation")

    return list(dict.fromkeys(tags))


# Global instance
n8n_client = N8NClient()
