"""
Executive View Model

Maps a workflow insight onto the two executive mental models: a digital
employee (conversational agent) or a process. Also produces a
manager-friendly status line from the execution history.
"""

from typing import List, Optional, Sequence
from datetime import datetime, timezone

from app.schemas.automation import (
    CHAT_LIKE_TRIGGERS,
    ExecutiveInsight,
    ExecutiveStatus,
    ExecutiveView,
    ViewTheme,
    WorkflowInsight,
    WorkflowTriggerInfo,
)
from app.services.workflow_analyzer import round_half_up

VIEW_THEMES = {
    ExecutiveView.DIGITAL_EMPLOYEE: ViewTheme(
        tint="text-purple-500",
        bg_soft="bg-purple-500/10",
        border_soft="border-purple-500/20",
        header="from-black to-purple-950/40",
    ),
    ExecutiveView.PROCESS: ViewTheme(
        tint="text-orange-500",
        bg_soft="bg-orange-500/10",
        border_soft="border-orange-500/20",
        header="from-black to-orange-950/40",
    ),
}


def _resolve_triggers(
    insight: WorkflowInsight,
    triggers: Optional[Sequence[WorkflowTriggerInfo]],
) -> Sequence[WorkflowTriggerInfo]:
    if triggers is not None:
        return triggers
    return insight.triggers or []


def _has_interactive_trigger(triggers: Sequence[WorkflowTriggerInfo]) -> bool:
    return any(t.type in CHAT_LIKE_TRIGGERS for t in triggers)


def classify_view(
    insight: WorkflowInsight,
    triggers: Optional[Sequence[WorkflowTriggerInfo]] = None,
) -> ExecutiveView:
    """Primary view; chat-like triggers or AI components make a digital employee"""
    if _has_interactive_trigger(_resolve_triggers(insight, triggers)):
        return ExecutiveView.DIGITAL_EMPLOYEE
    if insight.capabilities.has_ai_components:
        return ExecutiveView.DIGITAL_EMPLOYEE
    return ExecutiveView.PROCESS


def get_available_views(
    insight: WorkflowInsight,
    triggers: Optional[Sequence[WorkflowTriggerInfo]] = None,
) -> List[ExecutiveView]:
    """All views that make sense for the workflow, never empty"""
    has_interactive = _has_interactive_trigger(_resolve_triggers(insight, triggers))
    capabilities = insight.capabilities
    has_process = (
        capabilities.has_webhook_trigger
        or capabilities.has_scheduled_trigger
        or capabilities.has_data_processing
        or not has_interactive
    )

    views: List[ExecutiveView] = []
    if has_interactive:
        views.append(ExecutiveView.DIGITAL_EMPLOYEE)
    if has_process:
        views.append(ExecutiveView.PROCESS)
    return views or [classify_view(insight, triggers)]


def get_view_theme(view: ExecutiveView) -> ViewTheme:
    return VIEW_THEMES.get(view, VIEW_THEMES[ExecutiveView.PROCESS])


def get_executive_status(insight: WorkflowInsight, now: Optional[datetime] = None) -> ExecutiveStatus:
    """
    Map technical history to a status line for managers.

    Rules in order: inactive, failing, recently run, webhook idle, then a
    reliability label from the success rate.
    """
    history = insight.execution_history
    total = history.total or 0
    ok = history.successful or 0
    failed = history.failed or 0
    rate = (ok / total) * 100 if total > 0 else 0

    if not insight.workflow.get("active"):
        return ExecutiveStatus(label="Offline", tone="idle", details="Deaktiviert")

    if failed > 0 and rate < 80:
        return ExecutiveStatus(label="Problem", tone="bad", details="Mehrere Fehler erkannt")

    last = history.last_execution
    if last:
        now = now or datetime.now(timezone.utc)
        if last.tzinfo is None:
            last = last.replace(tzinfo=timezone.utc)
        minutes = round_half_up((now - last).total_seconds() / 60)
        if minutes <= 5:
            return ExecutiveStatus(label="Aktiv", tone="good", details="Vor Kurzem ausgeführt")
        if minutes <= 120:
            return ExecutiveStatus(label="Bereit", tone="idle", details=f"Zuletzt vor {minutes} Min.")

    # Webhook services are idle until called
    if insight.capabilities.has_webhook_trigger:
        return ExecutiveStatus(label="Bereit", tone="idle", details="Wartet auf Anfragen")

    if rate >= 95:
        label = "Stabil"
    elif rate >= 80:
        label = "Zuverlässig"
    else:
        label = "Auffällig"
    return ExecutiveStatus(label=label, tone="good" if rate >= 80 else "warn")


def build_executive_insight(insight: WorkflowInsight, now: Optional[datetime] = None) -> ExecutiveInsight:
    """Bundle an insight with its view, theme and status for the dashboard"""
    view = classify_view(insight)
    return ExecutiveInsight(
        insight=insight,
        view=view,
        available_views=get_available_views(insight),
        theme=get_view_theme(view),
        status=get_executive_status(insight, now=now),
    )
