"""
Workflow Analyzer

Analyzes n8n workflows to determine their category, capabilities and the
executive controls the dashboard should offer. Classification is driven by
substring matches on node type names:
- Node categorization and descriptions
- Workflow category and capabilities
- Executive controls
- Execution history and business KPIs
"""

from typing import Dict, Any, List, Optional, Sequence
from datetime import datetime, timezone
import math
import logging

from app.schemas.automation import (
    BusinessMetrics,
    ExecutionHistory,
    ExecutiveControl,
    KPI,
    NodeAnalysis,
    NodeCategory,
    WorkflowCapabilities,
    WorkflowCategory,
    WorkflowInsight,
)
from app.services import workflow_introspector

logger = logging.getLogger(__name__)

NODE_DESCRIPTIONS = {
    "chatTrigger": "Chat interface for AI agent conversations",
    "agent": "AI agent for automated conversations and task execution",
    "vectorStore": "Knowledge base storage and retrieval system",
    "httpRequestTool": "External API integration tool",
    "webhook": "Incoming data receiver from external systems",
    "telegram": "Telegram messaging and notifications",
    "memoryPostgresChat": "Conversation memory and context storage",
    "respondToWebhook": "Response handler for incoming requests",
}


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp from the N8N API into an aware datetime"""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def categorize_node(node_type: str) -> NodeCategory:
    """Categorize a node type for UI grouping (case-sensitive)"""
    if any(k in node_type for k in ("trigger", "webhook", "schedule")):
        return NodeCategory.TRIGGER
    if any(k in node_type for k in ("langchain", "openai", "agent")):
        return NodeCategory.AI_MODEL
    if any(k in node_type for k in ("http", "tool", "api")):
        return NodeCategory.TOOL
    if any(k in node_type for k in ("set", "split", "merge", "transform", "filter")):
        return NodeCategory.DATA_SOURCE
    if any(k in node_type for k in ("telegram", "email", "slack")):
        return NodeCategory.NOTIFICATION
    return NodeCategory.CONTROL_FLOW


def get_node_description(node_type: str, node_name: str) -> str:
    """Human-readable description keyed by the last segment of the node type"""
    key = node_type.split(".")[-1] or node_type
    return NODE_DESCRIPTIONS.get(key, f"{node_name} - {node_type}")


def is_executable_node(node_type: str) -> bool:
    return any(k in node_type for k in ("http", "agent", "tool"))


def has_output_data(node_type: str) -> bool:
    return "respondTo" not in node_type and "notification" not in node_type


def get_downstream_nodes(connections: Optional[Dict[str, Any]], node_name: str) -> List[str]:
    """Names of the nodes a node feeds into, in connection order"""
    if not connections or not isinstance(connections.get(node_name), dict):
        return []

    targets: List[str] = []
    for output_conns in connections[node_name].values():
        if not isinstance(output_conns, list):
            continue
        for conn_array in output_conns:
            if not isinstance(conn_array, list):
                continue
            for conn in conn_array:
                target = conn.get("node") if isinstance(conn, dict) else None
                if target and target not in targets:
                    targets.append(target)
    return targets


def analyze_node(node: Dict[str, Any], connections: Optional[Dict[str, Any]] = None) -> NodeAnalysis:
    """Analyze a single node"""
    node_type = node.get("type") or ""
    node_name = node.get("name") or ""
    return NodeAnalysis(
        id=str(node.get("id", "")),
        name=node_name,
        type=node_type,
        category=categorize_node(node_type),
        description=get_node_description(node_type, node_name),
        is_executable=is_executable_node(node_type),
        has_output=has_output_data(node_type),
        connections=get_downstream_nodes(connections, node_name),
    )


def determine_category(nodes: Sequence[NodeAnalysis]) -> WorkflowCategory:
    """Determine the overall workflow category"""
    has_ai = any(n.category == NodeCategory.AI_MODEL for n in nodes)
    has_webhook = any("webhook" in n.type for n in nodes)
    has_trigger = any(n.category == NodeCategory.TRIGGER for n in nodes)
    has_notifications = any(n.category == NodeCategory.NOTIFICATION for n in nodes)

    if has_ai and any("chat" in n.type for n in nodes):
        return WorkflowCategory.AI_AGENT
    if has_webhook and not has_ai:
        return WorkflowCategory.WEBHOOK_SERVICE
    if has_notifications and has_trigger:
        return WorkflowCategory.NOTIFICATION_SYSTEM
    if any(n.category == NodeCategory.DATA_SOURCE for n in nodes):
        return WorkflowCategory.DATA_PROCESSOR
    return WorkflowCategory.AUTOMATION_PIPELINE


def analyze_capabilities(nodes: Sequence[NodeAnalysis]) -> WorkflowCapabilities:
    """Infer what the executive dashboard can do with the workflow"""
    def type_has(keyword: str) -> bool:
        return any(keyword in n.type for n in nodes)

    def category_has(category: NodeCategory) -> bool:
        return any(n.category == category for n in nodes)

    return WorkflowCapabilities(
        can_execute_manually=type_has("manual"),
        has_webhook_trigger=type_has("webhook"),
        has_scheduled_trigger=type_has("schedule"),
        has_ai_components=category_has(NodeCategory.AI_MODEL),
        has_data_processing=category_has(NodeCategory.DATA_SOURCE),
        has_notifications=category_has(NodeCategory.NOTIFICATION),
        has_external_apis=category_has(NodeCategory.TOOL),
        requires_input=type_has("webhook") or type_has("manual"),
        has_file_generation=type_has("file"),
        has_memory=type_has("memory"),
    )


def generate_executive_controls(workflow_id: str, capabilities: WorkflowCapabilities) -> List[ExecutiveControl]:
    """Generate the controls offered for a workflow; live monitoring is always available"""
    controls: List[ExecutiveControl] = []

    if capabilities.can_execute_manually:
        controls.append(ExecutiveControl(
            type="execute",
            label="Run Workflow",
            description="Execute workflow manually with test data",
            endpoint=f"/workflows/{workflow_id}/execute",
            payload={},
        ))

    if capabilities.has_webhook_trigger:
        controls.append(ExecutiveControl(
            type="test",
            label="Test Webhook",
            description="Send test payload to webhook endpoint",
            endpoint=f"/workflows/{workflow_id}/webhook-test",
        ))

    if capabilities.has_ai_components:
        controls.append(ExecutiveControl(
            type="test",
            label="Test AI Agent",
            description="Send test message to AI agent",
            endpoint=f"/workflows/{workflow_id}/agent-test",
        ))

    controls.append(ExecutiveControl(
        type="monitor",
        label="Live Monitor",
        description="Real-time execution monitoring and logs",
        endpoint=f"/workflows/{workflow_id}/monitor",
    ))

    return controls


def execution_duration_ms(execution: Dict[str, Any]) -> Optional[float]:
    """Wall-clock duration of a finished execution in milliseconds"""
    started = parse_timestamp(execution.get("startedAt"))
    stopped = parse_timestamp(execution.get("stoppedAt"))
    if not started or not stopped:
        return None
    return (stopped - started).total_seconds() * 1000


def analyze_execution_history(executions: Sequence[Dict[str, Any]]) -> ExecutionHistory:
    """Summarize executions; the N8N API returns the newest execution first"""
    successful = len([e for e in executions if e.get("status") == "success"])
    failed = len([e for e in executions if e.get("status") == "error"])

    durations = [d for d in (execution_duration_ms(e) for e in executions) if d is not None]
    average_duration = sum(durations) / len(durations) if durations else 0.0

    last_execution = parse_timestamp(executions[0].get("startedAt")) if executions else None

    return ExecutionHistory(
        total=len(executions),
        successful=successful,
        failed=failed,
        average_duration=average_duration,
        last_execution=last_execution,
    )


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values, as the dashboard does"""
    return int(math.floor(value + 0.5))


def success_rate(history: ExecutionHistory) -> int:
    if history.total <= 0:
        return 0
    return round_half_up(history.successful / history.total * 100)


def generate_business_metrics(category: WorkflowCategory, history: ExecutionHistory) -> BusinessMetrics:
    """KPIs shown on the executive dashboard (labels match the German UI)"""
    rate = success_rate(history)
    seconds = max(1, round_half_up(history.average_duration / 1000))

    if category == WorkflowCategory.AI_AGENT:
        return BusinessMetrics(
            description="Digitaler Mitarbeiter für Kundeninteraktion (Chat/Assistenz)",
            kpis=[
                KPI(label="Erfolgsrate", value=f"{rate}%", trend="up" if rate >= 90 else "down"),
                KPI(label="Ø Antwortzeit", value=f"{seconds}s"),
                KPI(label="Interaktionen (heute/gesamt)", value=history.total),
                KPI(label="Fehler", value=history.failed),
            ],
        )

    if category == WorkflowCategory.WEBHOOK_SERVICE:
        error_rate = round_half_up(history.failed / history.total * 100) if history.total > 0 else 0
        return BusinessMetrics(
            description="API Service / Webhook-Integration",
            kpis=[
                KPI(label="Anfragen gesamt", value=history.total),
                KPI(label="Fehlerquote", value=f"{error_rate}%"),
                KPI(label="Ø Verarbeitungszeit", value=f"{round_half_up(history.average_duration)}ms"),
                KPI(label="Erfolgsrate", value=f"{rate}%"),
            ],
        )

    return BusinessMetrics(
        description="Automatisierter Geschäftsprozess",
        kpis=[
            KPI(label="Erfolgsrate", value=f"{rate}%"),
            KPI(label="Ausführungen", value=history.total),
            KPI(label="Ø Dauer", value=f"{seconds}s"),
        ],
    )


def analyze_workflow(
    workflow: Dict[str, Any],
    executions: Sequence[Dict[str, Any]] = (),
) -> WorkflowInsight:
    """
    Main analysis function - computes the executive insight for a workflow

    Args:
        workflow: Workflow dictionary from N8N API
        executions: Executions of this workflow, newest first

    Returns:
        WorkflowInsight including the triggers detected by the introspector
    """
    nodes = workflow.get("nodes") or []
    connections = workflow.get("connections") or {}
    workflow_id = str(workflow.get("id", ""))

    node_analyses = [analyze_node(node, connections) for node in nodes]
    category = determine_category(node_analyses)
    capabilities = analyze_capabilities(node_analyses)
    history = analyze_execution_history(list(executions))

    logger.debug(
        f"Analyzed workflow {workflow_id}: category={category.value}, "
        f"nodes={len(node_analyses)}, executions={history.total}"
    )

    return WorkflowInsight(
        workflow=workflow,
        category=category,
        capabilities=capabilities,
        nodes=node_analyses,
        controls=generate_executive_controls(workflow_id, capabilities),
        triggers=workflow_introspector.analyze_workflow(workflow).triggers,
        execution_history=history,
        business_metrics=generate_business_metrics(category, history),
    )
