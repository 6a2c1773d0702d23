"""Resolve which workflow entrypoint (chat, webhook or manual) a request should hit."""

from typing import Dict, Any, Optional

from app.schemas.automation import (
    AnalyzedWorkflow,
    IntentInput,
    ResolveResult,
    TriggerKind,
    TriggerType,
)

CHAT_PAYLOAD_FIELDS = ("message", "text", "chatInput", "input")
API_PAYLOAD_FIELDS = ("event", "data", "customer", "service")


def extract_message(payload: Optional[Dict[str, Any]], fields=CHAT_PAYLOAD_FIELDS) -> Any:
    """First truthy message-like field of a payload"""
    if not payload:
        return None
    for field in fields:
        value = payload.get(field)
        if value:
            return value
    return None


def looks_like_chat(payload: Optional[Dict[str, Any]]) -> bool:
    message = extract_message(payload)
    return isinstance(message, str) and len(message.strip()) > 0


def looks_like_api(payload: Optional[Dict[str, Any]]) -> bool:
    if not payload:
        return False
    return any(payload.get(field) for field in API_PAYLOAD_FIELDS)


def trigger_kind_for(trigger_type: TriggerType) -> TriggerKind:
    """Map a detected trigger to the entrypoint that can execute it"""
    if trigger_type == TriggerType.CHAT:
        return TriggerKind.CHAT
    if trigger_type == TriggerType.WEBHOOK:
        return TriggerKind.WEBHOOK
    return TriggerKind.MANUAL


def resolve_trigger(analysis: AnalyzedWorkflow, intent: IntentInput) -> ResolveResult:
    """
    Decide which trigger a request should be routed to.

    Precedence: explicit type, explicit node id, payload shape, what the
    workflow offers (chat, webhook, manual), and finally a manual fallback.
    """
    # 1) Explicit type wins
    if intent.explicit_type:
        kind = TriggerKind(intent.explicit_type)
        if intent.explicit_node_id:
            node = analysis.find_trigger(intent.explicit_node_id)
            reason = f"explicit:{kind.value}#{intent.explicit_node_id}"
        else:
            node = analysis.first_trigger(TriggerType(kind.value))
            reason = f"explicit:{kind.value}"
        return ResolveResult(kind=kind, node=node, reason=reason)

    # 2) Explicit node id implies its type
    if intent.explicit_node_id:
        node = analysis.find_trigger(intent.explicit_node_id)
        if node:
            return ResolveResult(kind=trigger_kind_for(node.type), node=node, reason=f"node:{node.type.value}")

    # 3) Payload heuristics
    if looks_like_chat(intent.payload) and analysis.has_chat:
        return ResolveResult(kind=TriggerKind.CHAT, node=analysis.first_trigger(TriggerType.CHAT), reason="heuristic:chat")
    if looks_like_api(intent.payload) and analysis.has_webhook:
        return ResolveResult(kind=TriggerKind.WEBHOOK, node=analysis.first_trigger(TriggerType.WEBHOOK), reason="heuristic:api")

    # 4) Analysis defaults
    if analysis.has_chat:
        return ResolveResult(kind=TriggerKind.CHAT, node=analysis.first_trigger(TriggerType.CHAT), reason="analysis:chat")
    if analysis.has_webhook:
        return ResolveResult(kind=TriggerKind.WEBHOOK, node=analysis.first_trigger(TriggerType.WEBHOOK), reason="analysis:webhook")
    manual = analysis.first_trigger(TriggerType.MANUAL)
    if manual:
        return ResolveResult(kind=TriggerKind.MANUAL, node=manual, reason="analysis:manual")

    # 5) Fallback
    return ResolveResult(kind=TriggerKind.MANUAL, reason="fallback:manual")
