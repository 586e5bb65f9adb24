"""
Per-user state API.

GET    /v1/users/{user_id}/history   — Recent conversation turns
DELETE /v1/users/{user_id}/history   — Clear conversation history
GET    /v1/users/{user_id}/memories  — Saved memory facts
DELETE /v1/users/{user_id}/memories  — Forget everything
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..core.dependencies import get_runtime, require_user
from ..runtime import Runtime

logger = logging.getLogger(__name__)

conversations_router = APIRouter(prefix="/users/{user_id}", tags=["users"])


class TurnOut(BaseModel):
    sequence_no: int
    role: str
    text: str
    created_at: str


class MemoryOut(BaseModel):
    id: int
    text: str
    source: str
    created_at: str


class ClearedOut(BaseModel):
    deleted: int


@conversations_router.get("/history", response_model=list[TurnOut])
async def get_history(
    user_id: str = Depends(require_user),
    runtime: Runtime = Depends(get_runtime),
    limit: int = 50,
):
    turns = await runtime.store.load_recent_turns(user_id, limit)
    return [
        TurnOut(
            sequence_no=t.sequence_no,
            role=t.role,
            text=t.text,
            created_at=t.created_at.isoformat() if t.created_at else "",
        )
        for t in turns
    ]


@conversations_router.delete("/history", response_model=ClearedOut)
async def clear_history(
    user_id: str = Depends(require_user),
    runtime: Runtime = Depends(get_runtime),
):
    count = await runtime.engine.clear_history(user_id)
    logger.info("Cleared %d turns for %s", count, user_id)
    return ClearedOut(deleted=count)


@conversations_router.get("/memories", response_model=list[MemoryOut])
async def list_memories(
    user_id: str = Depends(require_user),
    runtime: Runtime = Depends(get_runtime),
):
    memories = await runtime.store.list_memories(user_id)
    return [
        MemoryOut(
            id=m.id,
            text=m.text,
            source=m.source,
            created_at=m.created_at.isoformat() if m.created_at else "",
        )
        for m in memories
    ]


@conversations_router.delete("/memories", response_model=ClearedOut)
async def forget(
    user_id: str = Depends(require_user),
    runtime: Runtime = Depends(get_runtime),
):
    count = await runtime.store.clear_memories(user_id)
    return ClearedOut(deleted=count)
