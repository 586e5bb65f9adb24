"""
Main API router. Mounts all sub-routers.
"""

from fastapi import APIRouter, Depends

from ..core.dependencies import get_runtime
from ..runtime import Runtime

router = APIRouter()


# ── Health ───────────────────────────────────────────────────────────

@router.get("/health")
async def health(runtime: Runtime = Depends(get_runtime)):
    scheduler = runtime.scheduler.scheduler
    return {
        "status": "ok",
        "service": "hearth",
        "model": runtime.settings.ollama_model,
        "scheduler_running": scheduler is not None and scheduler.running,
    }


# ── V1 routes ────────────────────────────────────────────────────────

from .chat import chat_router
from .conversations import conversations_router
from .jobs import jobs_router
from .workspace import workspace_router

router.include_router(chat_router, prefix="/v1")
router.include_router(conversations_router, prefix="/v1")
router.include_router(jobs_router, prefix="/v1")
router.include_router(workspace_router, prefix="/v1")
