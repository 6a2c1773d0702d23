from fastapi import APIRouter, HTTPException, Request, status, Depends
from typing import Dict, Any
from datetime import datetime, timezone
import asyncio
import logging

import httpx

from app.core.rbac import require_staff
from app.schemas.automation import (
    AgentConnection,
    ChatRequest,
    ConnectRequest,
    ExecutionRequest,
    ExecutionResult,
    ExecutionType,
    ExecutiveInsight,
    IntentInput,
    LiveMonitoring,
    TriggerKind,
    TriggerType,
    WorkflowExecuteRequest,
    WorkflowInsightsResponse,
)
from app.services import workflow_analyzer
from app.services.activity_logger import log_workflow_activity
from app.services.ai_agent_service import ai_agent_service, extract_ai_results
from app.services.executive_view_model import build_executive_insight
from app.services.execution_controller import execution_controller
from app.services.intent_resolver import extract_message, resolve_trigger
from app.services.n8n_client import n8n_client
from app.services.workflow_introspector import analyze_workflow as introspect

router = APIRouter()
logger = logging.getLogger(__name__)

EXECUTIONS_FOR_INSIGHTS = 200
EXECUTIONS_FOR_SINGLE_INSIGHT = 50
INTENT_CHAT_WAIT_MS = 9000
CHAT_WAIT_MS = 60000


def _not_found_or_raise(e: httpx.HTTPStatusError, what: str):
    if e.response.status_code == 404:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{what} not found")
    raise HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=f"N8N request failed with status {e.response.status_code}"
    )


def _user_id(user_info: dict):
    return ((user_info or {}).get("user") or {}).get("id")


@router.get("/workflows", response_model=WorkflowInsightsResponse)
async def get_workflow_insights(user_info: dict = Depends(require_staff())):
    """
    Insights for every workflow.

    Workflows and the latest executions are fetched concurrently; a failed
    fetch degrades to an empty list instead of failing the whole page.
    """
    workflows_result, executions_result = await asyncio.gather(
        n8n_client.get_workflows(),
        n8n_client.get_executions(limit=EXECUTIONS_FOR_INSIGHTS),
        return_exceptions=True
    )

    workflows = [] if isinstance(workflows_result, Exception) else workflows_result
    executions = [] if isinstance(executions_result, Exception) else executions_result
    if isinstance(workflows_result, Exception):
        logger.warning(f"Failed to fetch workflows: {str(workflows_result)}")
    if isinstance(executions_result, Exception):
        logger.warning(f"Failed to fetch executions: {str(executions_result)}")

    try:
        insights = [
            workflow_analyzer.analyze_workflow(
                workflow,
                [e for e in executions if str(e.get("workflowId")) == str(workflow.get("id"))]
            )
            for workflow in workflows
        ]
    except Exception as e:
        logger.error(f"Failed to analyze workflows: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to analyze workflows: {str(e)}"
        )

    return WorkflowInsightsResponse(
        insights=insights,
        total_workflows=len(workflows),
        active_workflows=len([w for w in workflows if w.get("active")]),
        total_executions=len(executions),
    )


@router.get("/workflows/{workflow_id}/insight", response_model=ExecutiveInsight)
async def get_workflow_insight(workflow_id: str, user_info: dict = Depends(require_staff())):
    """Single workflow insight with executive view, theme and status"""
    try:
        workflow = await n8n_client.get_workflow(workflow_id)
    except httpx.HTTPStatusError as e:
        _not_found_or_raise(e, "Workflow")

    try:
        executions = await n8n_client.get_executions(workflow_id, limit=EXECUTIONS_FOR_SINGLE_INSIGHT)
    except httpx.HTTPError as e:
        logger.warning(f"Failed to fetch executions for {workflow_id}: {str(e)}")
        executions = []

    insight = workflow_analyzer.analyze_workflow(workflow, executions)
    return build_executive_insight(insight)


async def execute_workflow_by_intent(workflow_id: str, body: WorkflowExecuteRequest) -> Dict[str, Any]:
    """
    Route an execute request to the right entrypoint.

    Explicit webhook/manual requests need the matching trigger. Test
    requests go through the intent resolver: chat goes to the AI agent,
    webhook falls back to manual when possible.
    """
    try:
        workflow = await n8n_client.get_workflow(workflow_id)
    except httpx.HTTPStatusError as e:
        _not_found_or_raise(e, "Workflow")

    analysis = introspect(workflow)
    has_webhook = any(t.type == TriggerType.WEBHOOK and t.webhook_id for t in analysis.triggers)
    has_chat = any(t.type == TriggerType.CHAT and t.webhook_id for t in analysis.triggers)
    has_manual = analysis.first_trigger(TriggerType.MANUAL) is not None
    payload = body.payload or {}

    if body.type == ExecutionType.WEBHOOK:
        if not has_webhook:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No webhook trigger found")
        outcome = await execution_controller.run_webhook(workflow_id, payload, body.trigger_node_id)
        return {"success": True, "mode": TriggerKind.WEBHOOK.value, **outcome.model_dump()}

    if body.type == ExecutionType.MANUAL:
        if not has_manual:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No manual trigger found")
        outcome = await execution_controller.run_manual(workflow_id, payload)
        return {"success": True, "mode": TriggerKind.MANUAL.value, **outcome.model_dump()}

    resolved = resolve_trigger(analysis, IntentInput(
        explicit_type=body.trigger_type,
        explicit_node_id=body.trigger_node_id,
        payload=payload,
    ))
    logger.info(f"Resolved workflow {workflow_id} execution to {resolved.kind.value} ({resolved.reason})")
    node_id = resolved.node.node_id if resolved.node else body.trigger_node_id

    if resolved.kind == TriggerKind.CHAT and has_chat:
        chat = await ai_agent_service.send_chat_to_agent(
            workflow_id,
            extract_message(payload, ("message", "text", "chatInput")) or "Hallo",
            timestamp=datetime.now(timezone.utc).isoformat(),
            trigger_node_id=node_id,
            wait_for_result_ms=INTENT_CHAT_WAIT_MS,
        )
        return {
            "success": True,
            "mode": TriggerKind.CHAT.value,
            "status": chat.status,
            "execution_id": chat.metadata.execution_id,
            "data": chat.model_dump(mode="json"),
        }

    if resolved.kind == TriggerKind.WEBHOOK and has_webhook:
        try:
            outcome = await execution_controller.run_webhook(workflow_id, payload, node_id)
            return {"success": True, "mode": TriggerKind.WEBHOOK.value, **outcome.model_dump()}
        except ValueError as webhook_error:
            if not has_manual:
                raise
            try:
                outcome = await execution_controller.run_manual(workflow_id, payload)
            except ValueError as manual_error:
                raise ValueError(
                    f"Execution failed. Webhook: {str(webhook_error)}. Manual: {str(manual_error)}"
                )
            return {"success": True, "mode": TriggerKind.MANUAL.value, **outcome.model_dump()}

    if resolved.kind == TriggerKind.MANUAL and has_manual:
        outcome = await execution_controller.run_manual(workflow_id, payload)
        return {"success": True, "mode": TriggerKind.MANUAL.value, **outcome.model_dump()}

    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="No triggerable entrypoint (chat/webhook/manual) found"
    )


@router.post("/workflows/{workflow_id}/execute")
async def execute_workflow(
    workflow_id: str,
    body: WorkflowExecuteRequest,
    request: Request,
    user_info: dict = Depends(require_staff())
):
    """Execute a workflow through the entrypoint matching the request"""
    try:
        result = await execute_workflow_by_intent(workflow_id, body)
        await log_workflow_activity(
            _user_id(user_info), workflow_id, True, request,
            {"mode": result.get("mode"), "execution_id": result.get("execution_id")}
        )
        return result
    except HTTPException:
        raise
    except (ValueError, httpx.HTTPError) as e:
        logger.error(f"Failed to execute workflow {workflow_id}: {str(e)}")
        await log_workflow_activity(_user_id(user_info), workflow_id, False, request, {"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )


@router.post("/execute", response_model=ExecutionResult)
async def execute(body: ExecutionRequest, request: Request, user_info: dict = Depends(require_staff())):
    """Execute a workflow by execution type; failures are reported in the result"""
    result = await execution_controller.execute_workflow(body)
    await log_workflow_activity(
        _user_id(user_info), body.workflow_id, result.success, request,
        {"execution_type": body.execution_type.value, "execution_id": result.execution_id, "error": result.error}
    )
    return result


@router.get("/monitoring/{workflow_id}", response_model=LiveMonitoring)
async def get_monitoring(workflow_id: str, user_info: dict = Depends(require_staff())):
    try:
        return await execution_controller.get_live_monitoring(workflow_id)
    except Exception as e:
        logger.error(f"Failed to fetch monitoring data for {workflow_id}: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch monitoring data"
        )


@router.get("/executions/{execution_id}")
async def get_execution_logs(execution_id: str, user_info: dict = Depends(require_staff())):
    """Execution details including node run data"""
    try:
        return await execution_controller.get_execution_logs(execution_id)
    except httpx.HTTPStatusError as e:
        _not_found_or_raise(e, "Execution")
    except httpx.HTTPError as e:
        logger.error(f"Failed to fetch execution logs for {execution_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch execution logs"
        )


@router.post("/executions/{execution_id}/stop")
async def stop_execution(execution_id: str, user_info: dict = Depends(require_staff())):
    stopped = await execution_controller.stop_execution(execution_id)
    if not stopped:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to stop execution"
        )
    return {"success": True, "message": "Execution stopped"}


@router.get("/executions/{execution_id}/ai-results")
async def get_ai_results(execution_id: str, user_info: dict = Depends(require_staff())):
    """Text responses produced by AI nodes during an execution"""
    try:
        execution = await n8n_client.get_execution(execution_id, include_data=True)
    except httpx.HTTPStatusError as e:
        _not_found_or_raise(e, "Execution")

    results = extract_ai_results(execution)
    return {
        "success": True,
        "results": [r.model_dump() for r in results],
        "execution_id": execution_id,
        "metadata": {
            "total_results": len(results),
            "execution_status": execution.get("status") or "unknown",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    }


@router.post("/ai-agent/chat")
async def chat_with_agent(body: ChatRequest, user_info: dict = Depends(require_staff())):
    """Send a message to an AI agent workflow and return its answer"""
    try:
        result = await ai_agent_service.send_chat_to_agent(
            body.workflow_id,
            body.message,
            user_id=body.user_id or _user_id(user_info) or "executive-dashboard",
            timestamp=body.timestamp,
            trigger_node_id=body.trigger_node_id,
            wait_for_result_ms=CHAT_WAIT_MS,
        )
        return {"success": True, **result.model_dump(mode="json")}
    except httpx.HTTPStatusError as e:
        _not_found_or_raise(e, "Workflow")
    except (ValueError, httpx.HTTPError) as e:
        logger.error(f"AI agent chat with workflow {body.workflow_id} failed: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to communicate with AI agent: {str(e)}"
        )


@router.post("/ai-agent/connect", response_model=AgentConnection)
async def connect_agent(body: ConnectRequest, user_info: dict = Depends(require_staff())):
    """Check that a workflow can serve as a chat agent"""
    try:
        return await ai_agent_service.connect_agent(body.workflow_id)
    except httpx.HTTPStatusError as e:
        _not_found_or_raise(e, "Workflow")
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
