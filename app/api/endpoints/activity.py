from fastapi import APIRouter, HTTPException, Query, Request, status, Depends
from typing import Optional
import logging

from app.core.rbac import require_staff
from app.schemas.activity import ActivityLogEntry, ActivityLogListResponse, ActivityLogRequest
from app.services.activity_logger import log_activity, request_context
from app.services.auth_service import get_current_user
from app.services.database import db_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/log")
async def create_activity_log(
    body: ActivityLogRequest,
    request: Request,
    user_info: dict = Depends(get_current_user)
):
    """Record an event reported by the dashboard for the current user"""
    user = (user_info or {}).get("user") or {}
    if not user.get("id"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    logged = await log_activity(ActivityLogEntry(
        user_id=user["id"],
        **body.model_dump(),
        **request_context(request),
    ))
    if not logged:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to log activity"
        )
    return {"success": True}


@router.get("", response_model=ActivityLogListResponse)
async def get_activity_logs(
    user_id: Optional[str] = Query(None, description="Filter by acting user"),
    resource_id: Optional[str] = Query(None, description="Filter by resource, e.g. a workflow id"),
    limit: int = Query(50, ge=1, le=200),
    user_info: dict = Depends(require_staff())
):
    """Recent audit entries, newest first"""
    try:
        logs = await db_service.get_activity_logs(user_id=user_id, resource_id=resource_id, limit=limit)
    except Exception as e:
        logger.error(f"Failed to fetch activity logs: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch activity logs"
        )
    return ActivityLogListResponse(logs=logs, total=len(logs))
