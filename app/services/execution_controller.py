"""
Execution Controller

Executive-level controls for running, testing and monitoring N8N workflows:
manual runs through the API, webhook runs against the workflow's entrypoint
node, test runs that try both, live monitoring and execution logs.
"""

from typing import Dict, Any, List, Optional
from datetime import datetime, timezone
import logging
import time

import httpx

from app.schemas.automation import (
    CurrentExecution,
    ExecutionOutcome,
    ExecutionRequest,
    ExecutionResult,
    ExecutionType,
    LiveMonitoring,
    MonitoringMetrics,
    NodeResult,
    TestScenario,
    TriggerKind,
)
from app.services.intent_resolver import looks_like_api, extract_message
from app.services.n8n_client import N8NClient, n8n_client
from app.services.workflow_analyzer import execution_duration_ms, parse_timestamp, round_half_up
from app.services.workflow_introspector import (
    CHAT_TRIGGER_TYPE,
    MANUAL_TRIGGER_TYPE,
    WEBHOOK_TYPE,
)

logger = logging.getLogger(__name__)

DEFAULT_TEST_PAYLOAD = {"test": True, "source": "executive-dashboard"}


def select_webhook_node(
    nodes: List[Dict[str, Any]],
    payload: Optional[Dict[str, Any]] = None,
    trigger_node_id: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Pick the webhook-capable node a run should be sent to.

    Order: the requested node, the chat trigger unless the payload is
    API-shaped, the classic webhook, any chat trigger, any node with a
    webhook id.
    """
    candidates = [n for n in nodes if n.get("webhookId")]
    if not candidates:
        return None

    def first_of_type(node_type: str) -> Optional[Dict[str, Any]]:
        return next((n for n in candidates if n.get("type") == node_type), None)

    if trigger_node_id:
        specified = next((n for n in candidates if n.get("id") == trigger_node_id), None)
        if specified:
            return specified

    chat_trigger = first_of_type(CHAT_TRIGGER_TYPE)
    if chat_trigger and not looks_like_api(payload):
        return chat_trigger

    return first_of_type(WEBHOOK_TYPE) or chat_trigger or candidates[0]


def resolve_http_method(node: Dict[str, Any]) -> str:
    """HTTP method configured on a webhook node; lists prefer POST"""
    http_method = (node.get("parameters") or {}).get("httpMethod")
    if isinstance(http_method, list):
        if "POST" in http_method:
            return "POST"
        return str(http_method[0]).upper() if http_method else "POST"
    if isinstance(http_method, str) and http_method:
        return http_method.upper()
    return "POST"


def build_webhook_payload(node: Dict[str, Any], payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Copy the payload, add chatInput for chat triggers and stamp the execution time"""
    base = dict(payload) if payload is not None else dict(DEFAULT_TEST_PAYLOAD)
    if node.get("type") == CHAT_TRIGGER_TYPE:
        base["chatInput"] = extract_message(base, ("message", "text", "input")) or "Hello"
    base["timestamp"] = datetime.now(timezone.utc).isoformat()
    return base


def webhook_path(node: Dict[str, Any]) -> str:
    """Webhook nodes are addressed by their configured path, chat triggers by webhook id"""
    if node.get("type") != CHAT_TRIGGER_TYPE:
        path = (node.get("parameters") or {}).get("path")
        if path:
            return str(path).strip("/")
    return node.get("webhookId") or ""


def parse_node_results(execution: Dict[str, Any]) -> List[NodeResult]:
    """Per-node results from nodeExecutions, or from the run data when that is absent"""
    if not isinstance(execution, dict):
        return []

    node_executions = execution.get("nodeExecutions")
    if isinstance(node_executions, dict):
        return [
            NodeResult(
                node_id=node_id,
                node_name=data.get("name") or node_id,
                status="error" if data.get("error") else "success",
                output=data.get("output"),
                error=data.get("error"),
                duration=data.get("executionTime"),
            )
            for node_id, data in node_executions.items()
            if isinstance(data, dict)
        ]

    run_data = ((execution.get("data") or {}).get("resultData") or {}).get("runData")
    if not isinstance(run_data, dict):
        return []

    results = []
    for node_name, runs in run_data.items():
        if not isinstance(runs, list) or not runs or not isinstance(runs[-1], dict):
            continue
        run = runs[-1]
        results.append(NodeResult(
            node_id=node_name,
            node_name=node_name,
            status="error" if run.get("error") else "success",
            output=(run.get("data") or {}).get("main"),
            error=run.get("error"),
            duration=run.get("executionTime"),
        ))
    return results


def generate_test_scenarios(workflow: Dict[str, Any]) -> List[TestScenario]:
    """Minimal test payloads for each entrypoint the workflow offers"""
    nodes = workflow.get("nodes") or []
    has_chat = any(n.get("type") == CHAT_TRIGGER_TYPE for n in nodes)
    has_webhook = any(n.get("type") == WEBHOOK_TYPE or n.get("webhookId") for n in nodes)
    has_manual = any(n.get("type") == MANUAL_TRIGGER_TYPE for n in nodes)

    scenarios: List[TestScenario] = []
    if has_chat:
        scenarios.append(TestScenario(
            name="Chat Test",
            description="Minimal chat input",
            payload={"chatInput": "Hallo"},
            preferred_trigger_type=TriggerKind.CHAT,
        ))
    if has_webhook:
        scenarios.append(TestScenario(
            name="Webhook Test",
            description="Minimal payload",
            payload={},
            preferred_trigger_type=TriggerKind.WEBHOOK,
        ))
    if has_manual:
        scenarios.append(TestScenario(
            name="Manual Test",
            description="Basic manual execution",
            payload={},
            preferred_trigger_type=TriggerKind.MANUAL,
        ))

    if not scenarios:
        scenarios.append(TestScenario(
            name="Basic Test",
            description="Fallback execution",
            payload={},
            preferred_trigger_type=TriggerKind.MANUAL,
        ))
    return scenarios


class ExecutionController:
    """Runs and monitors workflows on behalf of the executive dashboard"""

    def __init__(self, client: N8NClient = None):
        self.client = client or n8n_client

    async def execute_workflow(self, request: ExecutionRequest) -> ExecutionResult:
        """Dispatch a run by execution type; failures are reported, not raised"""
        start = time.monotonic()
        try:
            if request.execution_type == ExecutionType.MANUAL:
                outcome = await self.run_manual(request.workflow_id, request.payload)
            elif request.execution_type == ExecutionType.WEBHOOK:
                outcome = await self.run_webhook(request.workflow_id, request.payload)
            elif request.execution_type == ExecutionType.TEST:
                outcome = await self.run_test(request.workflow_id, request.payload)
            else:
                raise ValueError(f"Unknown execution type: {request.execution_type}")
        except (ValueError, httpx.HTTPError) as e:
            logger.warning(f"Execution of workflow {request.workflow_id} failed: {str(e)}")
            return ExecutionResult(
                success=False,
                error=str(e),
                duration=round_half_up((time.monotonic() - start) * 1000),
            )

        return ExecutionResult(
            success=True,
            execution_id=outcome.execution_id,
            data=outcome.data,
            duration=round_half_up((time.monotonic() - start) * 1000),
            node_results=outcome.node_results,
        )

    async def run_manual(self, workflow_id: str, payload: Optional[Dict[str, Any]] = None) -> ExecutionOutcome:
        """Execute a workflow with a manual trigger through the API"""
        try:
            result = await self.client.execute_workflow(workflow_id, payload)
        except httpx.HTTPError as e:
            raise ValueError(f"Manual execution failed: {str(e)}") from e

        if not result:
            raise ValueError("Manual execution failed: empty response")

        return ExecutionOutcome(
            execution_id=str(result["id"]) if result.get("id") is not None else None,
            data=result,
            node_results=parse_node_results(result),
        )

    async def run_webhook(
        self,
        workflow_id: str,
        payload: Optional[Dict[str, Any]] = None,
        trigger_node_id: Optional[str] = None,
    ) -> ExecutionOutcome:
        """Execute a workflow through its webhook or chat trigger"""
        try:
            workflow = await self.client.get_workflow(workflow_id)
        except httpx.HTTPError as e:
            raise ValueError("Failed to get workflow details") from e

        node = select_webhook_node(workflow.get("nodes") or [], payload, trigger_node_id)
        if not node or not node.get("webhookId"):
            raise ValueError("No webhook found in workflow")

        method = resolve_http_method(node)
        response = await self.client.call_webhook(
            webhook_path(node),
            bool(workflow.get("active")),
            build_webhook_payload(node, payload),
            method=method,
        )
        if not response.is_success:
            raise ValueError(f"Webhook execution failed: {response.reason_phrase or response.status_code}")

        try:
            data = response.json()
        except ValueError:
            data = response.text

        execution_id = None
        try:
            latest = await self.client.get_executions(workflow_id, limit=1)
            if latest:
                execution_id = str(latest[0].get("id"))
        except httpx.HTTPError as e:
            logger.warning(f"Could not resolve execution id for workflow {workflow_id}: {str(e)}")

        return ExecutionOutcome(execution_id=execution_id, data=data, node_results=[])

    async def run_test(self, workflow_id: str, payload: Optional[Dict[str, Any]] = None) -> ExecutionOutcome:
        """Try the webhook entrypoint first, then a manual run"""
        test_payload = payload if payload is not None else await self.generate_test_data(workflow_id)

        try:
            return await self.run_webhook(workflow_id, test_payload)
        except (ValueError, httpx.HTTPError) as webhook_error:
            try:
                return await self.run_manual(workflow_id, test_payload)
            except (ValueError, httpx.HTTPError) as manual_error:
                raise ValueError(
                    f"Execution failed. Webhook: {str(webhook_error)}. Manual: {str(manual_error)}"
                ) from manual_error

    async def generate_test_data(self, workflow_id: str) -> Dict[str, Any]:
        """Payload of the first test scenario for the workflow"""
        try:
            workflow = await self.client.get_workflow(workflow_id)
        except httpx.HTTPError as e:
            logger.warning(f"Could not load workflow {workflow_id} for test data: {str(e)}")
            return dict(DEFAULT_TEST_PAYLOAD)

        scenarios = generate_test_scenarios(workflow)
        return scenarios[0].payload if scenarios else dict(DEFAULT_TEST_PAYLOAD)

    async def get_live_monitoring(self, workflow_id: str, now: Optional[datetime] = None) -> LiveMonitoring:
        """Current run state and today's metrics from the last 50 executions"""
        try:
            executions = await self.client.get_executions(workflow_id, limit=50)
        except httpx.HTTPError as e:
            logger.warning(f"Failed to fetch executions for monitoring of {workflow_id}: {str(e)}")
            executions = []

        now = now or datetime.now(timezone.utc)
        running = next((e for e in executions if e.get("status") == "running"), None)

        today_executions = []
        for execution in executions:
            started = parse_timestamp(execution.get("startedAt"))
            if started and started.astimezone(timezone.utc).date() == now.astimezone(timezone.utc).date():
                today_executions.append(execution)
        successful_today = len([e for e in today_executions if e.get("status") == "success"])
        failed_today = len([e for e in today_executions if e.get("status") == "error"])

        durations = [d for d in (execution_duration_ms(e) for e in executions) if d is not None]
        average_response_time = round_half_up(sum(durations) / len(durations)) if durations else 0

        current_execution = None
        if running:
            current_execution = CurrentExecution(
                id=str(running.get("id")),
                started_at=parse_timestamp(running.get("startedAt")),
                # Real progress needs node-level run data
                progress=50,
            )

        return LiveMonitoring(
            workflow_id=workflow_id,
            is_running=running is not None,
            current_execution=current_execution,
            recent_executions=executions[:10],
            metrics=MonitoringMetrics(
                executions_today=len(today_executions),
                success_rate=round_half_up(successful_today / len(today_executions) * 100) if today_executions else 0,
                average_response_time=average_response_time,
                error_count=failed_today,
            ),
        )

    async def stop_execution(self, execution_id: str) -> bool:
        return await self.client.stop_execution(execution_id)

    async def get_execution_logs(self, execution_id: str) -> Dict[str, Any]:
        """
        Execution with result data.

        Falls back to the plain execution when includeData is rejected, and
        merges the separate results endpoint when run data is missing.
        """
        try:
            execution = await self.client.get_execution(execution_id, include_data=True)
        except httpx.HTTPStatusError:
            execution = await self.client.get_execution(execution_id)

        data = execution.get("data") or {}
        if not data.get("resultData"):
            try:
                result_data = await self.client.get_execution_results(execution_id)
                execution["data"] = {**data, "resultData": result_data}
            except httpx.HTTPError as e:
                logger.info(f"Could not fetch separate result data for execution {execution_id}: {str(e)}")

        return execution


# Global instance
execution_controller = ExecutionController()
