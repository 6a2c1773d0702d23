"""
Health check endpoint for service status monitoring.
Reports configuration, Supabase and N8N reachability.
"""
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from datetime import datetime, timezone
from typing import Dict, Any
import logging

import httpx

from app.core.config import settings
from app.services.database import db_service
from app.services.n8n_client import n8n_client

logger = logging.getLogger(__name__)

router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def check_env() -> Dict[str, bool]:
    """Which required settings are present (never their values)"""
    return {
        "SUPABASE_URL": bool(settings.SUPABASE_URL),
        "SUPABASE_KEY": bool(settings.SUPABASE_KEY),
        "SUPABASE_SERVICE_KEY": bool(settings.SUPABASE_SERVICE_KEY),
        "N8N_BASE_URL": bool(settings.N8N_BASE_URL),
        "N8N_API_KEY": bool(settings.N8N_API_KEY),
    }


async def check_supabase() -> Dict[str, Any]:
    if not settings.SUPABASE_URL:
        return {"status": "unhealthy", "error": "SUPABASE_URL not configured"}
    try:
        await db_service.ping()
        return {"status": "healthy"}
    except Exception as e:
        logger.error(f"Supabase health check failed: {str(e)}")
        return {"status": "unhealthy", "error": str(e)}


async def check_n8n() -> Dict[str, Any]:
    if not settings.N8N_BASE_URL:
        return {"status": "unhealthy", "error": "N8N_BASE_URL not configured"}
    try:
        await n8n_client.health_check()
        return {"status": "healthy"}
    except httpx.HTTPError as e:
        logger.error(f"N8N health check failed: {str(e)}")
        return {"status": "unhealthy", "error": str(e)}


@router.get("")
async def health_check() -> JSONResponse:
    """
    Comprehensive health check endpoint.

    Returns:
        - ok: True when every check passed
        - supabase / n8n: Status of each dependency
        - env: Presence of required settings
        - timestamp: Current UTC timestamp

    Status codes:
        - 200: All checks passed
        - 503: One or more checks failed
    """
    env = check_env()
    supabase = await check_supabase()
    n8n = await check_n8n()

    ok = all(env.values()) and supabase["status"] == "healthy" and n8n["status"] == "healthy"
    checks = {
        "ok": ok,
        "supabase": supabase,
        "n8n": n8n,
        "env": env,
        "timestamp": _now(),
    }
    return JSONResponse(content=checks, status_code=200 if ok else 503)


@router.get("/ready")
async def readiness_check() -> JSONResponse:
    """
    Kubernetes-style readiness probe.
    Returns 200 if the service can reach its dependencies.
    """
    supabase = await check_supabase()
    n8n = await check_n8n()
    ready = supabase["status"] == "healthy" and n8n["status"] == "healthy"
    content = {"ready": ready, "timestamp": _now()}
    if not ready:
        content["error"] = supabase.get("error") or n8n.get("error")
    return JSONResponse(content=content, status_code=200 if ready else 503)


@router.get("/live")
async def liveness_check() -> JSONResponse:
    """
    Kubernetes-style liveness probe.
    Returns 200 if the service is running (not deadlocked).
    """
    return JSONResponse(
        content={"alive": True, "timestamp": _now()},
        status_code=200
    )
