"""
Workflow Introspector

Detects the entrypoints (triggers) of an n8n workflow from its node list.
Each node yields at most one trigger; the first matching rule wins.
"""

from typing import Dict, Any, List, Optional

from app.schemas.automation import (
    AnalyzedWorkflow,
    TriggerType,
    WorkflowTriggerInfo,
)

CHAT_TRIGGER_TYPE = "@n8n/n8n-nodes-langchain.chatTrigger"
WEBHOOK_TYPE = "n8n-nodes-base.webhook"
MANUAL_TRIGGER_TYPE = "n8n-nodes-base.manualTrigger"
SCHEDULE_TRIGGER_TYPES = ("n8n-nodes-base.cron", "n8n-nodes-base.scheduleTrigger")

DEFAULT_PROMPT_FIELD = "chatInput"

# Community/vendor triggers that need an external messaging client,
# matched case-insensitively against the node type
EXTERNAL_CLIENT_TRIGGERS = [
    (TriggerType.TELEGRAM, ("telegramtrigger",)),
    (TriggerType.SLACK, ("slacktrigger",)),
    (TriggerType.DISCORD, ("discordtrigger",)),
    (TriggerType.WHATSAPP, ("whatsapptrigger", "meta-whatsapp-trigger")),
    (TriggerType.EMAIL, ("emailtrigger", "imaptrigger")),
]


def _contains(node_type: str, keyword: str) -> bool:
    return keyword.lower() in node_type.lower()


def get_prompt_field(node: Dict[str, Any]) -> Optional[str]:
    """Return the parameter a chat trigger reads its prompt from, if configured"""
    params = node.get("parameters") or {}
    return params.get("promptField") or params.get("prompt") or params.get("promptVariable") or None


def detect_trigger(node: Dict[str, Any]) -> Optional[WorkflowTriggerInfo]:
    """Classify a single node as a trigger, or return None"""
    node_type = node.get("type") or ""
    if not node_type:
        return None

    node_id = node.get("id", "")
    node_name = node.get("name", "")
    params = node.get("parameters") or {}

    if node_type == CHAT_TRIGGER_TYPE:
        return WorkflowTriggerInfo(
            node_id=node_id,
            node_name=node_name,
            type=TriggerType.CHAT,
            webhook_id=node.get("webhookId"),
            is_public=bool(params.get("public")),
            requires_external_client=False,
            prompt_field=get_prompt_field(node) or DEFAULT_PROMPT_FIELD,
        )

    if node_type == WEBHOOK_TYPE:
        return WorkflowTriggerInfo(
            node_id=node_id,
            node_name=node_name,
            type=TriggerType.WEBHOOK,
            webhook_id=node.get("webhookId"),
            is_public=True,
            requires_external_client=False,
        )

    for trigger_type, keywords in EXTERNAL_CLIENT_TRIGGERS:
        if any(_contains(node_type, keyword) for keyword in keywords):
            return WorkflowTriggerInfo(
                node_id=node_id,
                node_name=node_name,
                type=trigger_type,
                is_public=False,
                requires_external_client=True,
            )

    if node_type == MANUAL_TRIGGER_TYPE:
        return WorkflowTriggerInfo(node_id=node_id, node_name=node_name, type=TriggerType.MANUAL)

    if node_type in SCHEDULE_TRIGGER_TYPES:
        return WorkflowTriggerInfo(node_id=node_id, node_name=node_name, type=TriggerType.CRON)

    return None


def analyze_workflow(workflow: Dict[str, Any]) -> AnalyzedWorkflow:
    """
    Detect all triggers of a workflow.

    Args:
        workflow: Workflow dictionary from the N8N API

    Returns:
        AnalyzedWorkflow with triggers in node order and convenience flags
    """
    triggers: List[WorkflowTriggerInfo] = []
    for node in workflow.get("nodes") or []:
        trigger = detect_trigger(node)
        if trigger:
            triggers.append(trigger)

    trigger_types = {t.type for t in triggers}
    return AnalyzedWorkflow(
        workflow_id=str(workflow.get("id", "")),
        name=workflow.get("name", ""),
        triggers=triggers,
        has_chat=TriggerType.CHAT in trigger_types,
        has_webhook=TriggerType.WEBHOOK in trigger_types,
        has_telegram=TriggerType.TELEGRAM in trigger_types,
    )
