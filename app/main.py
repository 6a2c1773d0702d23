from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.api.endpoints import activity, automation, health
from app.schemas.activity import ActivityAction, ActivityLogEntry, ActivitySeverity, ResourceType
from app.services.activity_logger import log_activity, request_context

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"{settings.PROJECT_NAME} starting, n8n at {settings.N8N_BASE_URL or '<not configured>'}")
    if not settings.SUPABASE_URL:
        logger.warning("SUPABASE_URL is not set; authentication and activity logging will fail")
    yield
    logger.info(f"{settings.PROJECT_NAME} shutting down")


app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ROUTERS = (
    (automation.router, "automation"),
    (health.router, "health"),
    (activity.router, "activity"),
)

for router, name in ROUTERS:
    app.include_router(router, prefix=f"{settings.API_V1_PREFIX}/{name}", tags=[name])


@app.get("/")
async def root():
    return {
        "message": "BSM Automation API",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Turn unhandled errors into a JSON 500 and record them as a system event"""
    if isinstance(exc, HTTPException):
        raise exc

    logger.error(f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}: {str(exc)}", exc_info=True)

    await log_activity(ActivityLogEntry(
        action=ActivityAction.SYSTEM_EVENT,
        resource_type=ResourceType.SYSTEM,
        severity=ActivitySeverity.HIGH,
        description=f"Unhandled {type(exc).__name__}: {str(exc)}",
        **request_context(request),
    ))

    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error_type": type(exc).__name__},
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=4000, reload=True)
