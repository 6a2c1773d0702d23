"""
AI Agent Service

Chat with workflows that expose an AI agent through a chat trigger or
webhook, and read the agent's answers back out of execution run data.
"""

from typing import Dict, Any, List, Optional
from datetime import datetime, timezone
import asyncio
import json
import logging
import time

import httpx

from app.schemas.automation import (
    AgentCapabilities,
    AgentConnection,
    AIResult,
    AIResultMetadata,
    ChatMetadata,
    ChatResult,
    TriggerType,
    WorkflowTriggerInfo,
)
from app.services.n8n_client import N8NClient, n8n_client
from app.services.workflow_introspector import analyze_workflow

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 0.7
DEFAULT_WAIT_MS = 8000
RESPONSE_FIELDS = ("response", "text", "message", "output")
AI_RESULT_FIELDS = ("response", "text", "message")
AI_NODE_KEYWORDS = ("agent", "chat", "langchain", "openai")


def _first_text(values: Dict[str, Any], fields=RESPONSE_FIELDS) -> Optional[Any]:
    for field in fields:
        value = values.get(field)
        if value:
            return value
    return None


def iter_node_outputs(execution: Dict[str, Any]):
    """Yield (node_name, node_run, output_index, output_json) from the first run of each node"""
    payload = execution.get("data") or {}
    run_data = (payload.get("resultData") or {}).get("runData") or {}
    for node_name, runs in run_data.items():
        if not isinstance(runs, list) or not runs or not isinstance(runs[0], dict):
            continue
        node_run = runs[0]
        main = (node_run.get("data") or {}).get("main") or []
        outputs = main[0] if main and isinstance(main[0], list) else []
        for index, output in enumerate(outputs):
            if isinstance(output, dict) and isinstance(output.get("json"), dict):
                yield node_name, node_run, index, output["json"]


def extract_response_text(execution: Dict[str, Any]) -> Optional[str]:
    """First non-blank text answer found in an execution's run data"""
    for _, _, _, output in iter_node_outputs(execution):
        text = _first_text(output)
        if isinstance(text, str) and text.strip():
            return text
    return None


def extract_ai_results(execution: Dict[str, Any]) -> List[AIResult]:
    """All text responses produced by nodes in an execution"""
    results = []
    for node_name, node_run, index, output in iter_node_outputs(execution):
        content = _first_text(output, AI_RESULT_FIELDS)
        if not content:
            continue
        results.append(AIResult(
            id=f"{node_name}-{index}",
            node_id=node_name,
            node_name=node_name,
            content=content,
            timestamp=execution.get("startedAt") or datetime.now(timezone.utc).isoformat(),
            metadata=AIResultMetadata(
                model=output.get("model") or "unknown",
                confidence=output.get("confidence") or 0.8,
                execution_time=node_run.get("executionTime") or 0,
                tokens=output.get("tokens"),
            ),
        ))
    return results


def immediate_response_text(result: Any) -> Optional[Any]:
    """Answer returned synchronously by a Respond to Webhook node"""
    if isinstance(result, str):
        return result or None
    if not isinstance(result, dict):
        return None
    text = _first_text(result)
    if text:
        return text
    data = result.get("data")
    if isinstance(data, dict):
        return _first_text(data, ("response", "message", "output"))
    return None


def select_chat_trigger(
    triggers: List[WorkflowTriggerInfo],
    trigger_node_id: Optional[str] = None,
) -> Optional[WorkflowTriggerInfo]:
    """Requested chat/webhook trigger, else the first chat trigger, else the first webhook"""
    usable = [t for t in triggers if t.webhook_id and t.type in (TriggerType.CHAT, TriggerType.WEBHOOK)]
    if trigger_node_id:
        requested = next((t for t in usable if t.node_id == trigger_node_id), None)
        if requested:
            return requested
    return (
        next((t for t in usable if t.type == TriggerType.CHAT), None)
        or next((t for t in usable if t.type == TriggerType.WEBHOOK), None)
    )


class AIAgentService:
    """Talks to AI agent workflows through their chat entrypoints"""

    def __init__(self, client: N8NClient = None):
        self.client = client or n8n_client

    async def send_chat_to_agent(
        self,
        workflow_id: str,
        message: str,
        user_id: str = "executive-dashboard",
        timestamp: Optional[str] = None,
        trigger_node_id: Optional[str] = None,
        wait_for_result_ms: int = DEFAULT_WAIT_MS,
    ) -> ChatResult:
        """
        Send a chat message to an agent workflow and wait for its answer.

        The answer is looked up in the latest execution's run data until the
        wait window closes; the synchronous webhook response is the fallback.

        Raises:
            httpx.HTTPStatusError: the workflow could not be loaded
            ValueError: no chat entrypoint, webhook failure, or no answer in time
        """
        workflow = await self.client.get_workflow(workflow_id)
        trigger = select_chat_trigger(analyze_workflow(workflow).triggers, trigger_node_id)
        if not trigger or not trigger.webhook_id:
            raise ValueError("No suitable trigger found for chat")

        timestamp = timestamp or datetime.now(timezone.utc).isoformat()
        body = {
            trigger.prompt_field or "chatInput": message,
            "message": message,
            "text": message,
            "input": message,
            "user": user_id,
            "timestamp": timestamp,
            "source": "automation-dashboard",
            "sessionId": f"exec-{int(time.time() * 1000)}",
        }

        response = await self.client.call_webhook(trigger.webhook_id, bool(workflow.get("active")), body)
        raw_text = response.text or ""
        if not response.is_success:
            reason = raw_text or response.reason_phrase or "Unknown error"
            raise ValueError(f"AI Agent webhook failed: {reason}")

        try:
            result: Any = json.loads(raw_text) if raw_text else {}
        except ValueError:
            result = raw_text

        response_text, execution_id = await self._poll_for_response(workflow_id, wait_for_result_ms)
        final_response = response_text or immediate_response_text(result)
        if not final_response:
            raise ValueError(
                f"AI Agent did not respond within {wait_for_result_ms}ms. "
                "Please check the N8N workflow has a \"Respond to Webhook\" node."
            )

        return ChatResult(
            status="completed",
            response=final_response,
            metadata=ChatMetadata(
                execution_id=execution_id,
                workflow_name=workflow.get("name"),
                timestamp=datetime.now(timezone.utc),
            ),
            raw=result,
        )

    async def _poll_for_response(self, workflow_id: str, wait_for_result_ms: int):
        """Return (response_text, execution_id) from the latest execution, or (None, id) on timeout"""
        response_text = None
        execution_id = None
        deadline = time.monotonic() + max(0, wait_for_result_ms) / 1000

        while time.monotonic() < deadline and not response_text:
            try:
                latest = await self.client.get_executions(workflow_id, limit=1)
                execution = None
                if latest and latest[0].get("id"):
                    execution_id = str(latest[0]["id"])
                    execution = await self.client.get_execution(execution_id, include_data=True)
            except httpx.HTTPError as e:
                logger.warning(f"Polling executions of workflow {workflow_id} failed: {str(e)}")
                execution = None

            if execution:
                response_text = extract_response_text(execution)
                status = execution.get("status")
                if not response_text and status and status != "running":
                    break

            if not response_text:
                await asyncio.sleep(POLL_INTERVAL_SECONDS)

        return response_text, execution_id

    async def connect_agent(self, workflow_id: str) -> AgentConnection:
        """
        Verify a workflow can act as a chat agent.

        Raises:
            httpx.HTTPStatusError: the workflow could not be loaded
            ValueError: inactive, no AI nodes, or no webhook entrypoint
        """
        workflow = await self.client.get_workflow(workflow_id)
        nodes = workflow.get("nodes") or []

        if not workflow.get("active"):
            raise ValueError("Workflow is not active")

        types = [n.get("type") or "" for n in nodes]
        if not any(keyword in t for t in types for keyword in AI_NODE_KEYWORDS):
            raise ValueError("Workflow does not contain AI components")

        webhook_node = next(
            (n for n in nodes if "webhook" in (n.get("type") or "") or "chatTrigger" in (n.get("type") or "")),
            None,
        )
        if not webhook_node or not webhook_node.get("webhookId"):
            raise ValueError("No webhook found for AI agent communication")

        return AgentConnection(
            workflow_name=workflow.get("name", ""),
            agent_type=next((t for t in types if "agent" in t), "ai_agent"),
            capabilities=AgentCapabilities(
                chat=True,
                file_generation=any("file" in t for t in types),
                scheduling=any("schedule" in t for t in types),
                memory=any("memory" in t for t in types),
            ),
        )


# Global instance
ai_agent_service = AIAgentService()
