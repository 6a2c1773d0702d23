"""
Activity Logger

Writes user actions to the Supabase audit table. Failures are logged and
swallowed so that auditing never breaks the request being audited.
"""

from typing import Dict, Any, Optional
import logging

from fastapi import Request

from app.schemas.activity import (
    ActivityAction,
    ActivityLogEntry,
    ActivitySeverity,
    ResourceType,
)
from app.services.database import db_service

logger = logging.getLogger(__name__)


def request_context(request: Optional[Request]) -> Dict[str, Any]:
    """Client address, user agent, path and method of a request"""
    if request is None:
        return {}
    forwarded = request.headers.get("x-forwarded-for")
    ip_address = forwarded.split(",")[0].strip() if forwarded else (
        request.client.host if request.client else None
    )
    return {
        "ip_address": ip_address,
        "user_agent": request.headers.get("user-agent"),
        "request_path": request.url.path,
        "request_method": request.method,
    }


async def log_activity(entry: ActivityLogEntry) -> bool:
    """Insert an audit row. Returns False instead of raising on failure."""
    try:
        await db_service.create_activity_log(entry.model_dump(mode="json"))
        return True
    except Exception as e:
        logger.error(f"Failed to log activity {entry.action.value}: {str(e)}")
        return False


async def log_workflow_activity(
    user_id: Optional[str],
    workflow_id: str,
    success: bool,
    request: Optional[Request] = None,
    context: Optional[Dict[str, Any]] = None,
) -> bool:
    """Audit a workflow execution attempt"""
    entry = ActivityLogEntry(
        user_id=user_id,
        action=ActivityAction.WORKFLOW_EXECUTED if success else ActivityAction.WORKFLOW_FAILED,
        resource_type=ResourceType.WORKFLOW,
        resource_id=workflow_id,
        additional_context=context or {},
        severity=ActivitySeverity.LOW if success else ActivitySeverity.MEDIUM,
        description=f"Workflow {workflow_id} {'executed' if success else 'failed'}",
        **request_context(request),
    )
    return await log_activity(entry)


async def log_access_denied(
    user_id: Optional[str],
    reason: str,
    request: Optional[Request] = None,
) -> bool:
    entry = ActivityLogEntry(
        user_id=user_id,
        action=ActivityAction.ACCESS_DENIED,
        resource_type=ResourceType.AUTHENTICATION,
        severity=ActivitySeverity.MEDIUM,
        description=reason,
        **request_context(request),
    )
    return await log_activity(entry)
