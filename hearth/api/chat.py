"""
Chat API.

POST /v1/chat — One turn (or slash command) for a user
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..core.dependencies import ensure_user_allowed, get_runtime
from ..runtime import Runtime

logger = logging.getLogger(__name__)

chat_router = APIRouter(tags=["chat"])


class ChatRequest(BaseModel):
    user_id: str
    message: str


class ChatResponse(BaseModel):
    content: str
    notes: list[str] = []
    is_command: bool = False
    failed: bool = False


@chat_router.post("/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    runtime: Runtime = Depends(get_runtime),
):
    """Send a message to Hearth. Slash commands are answered without the model."""
    ensure_user_allowed(runtime, request.user_id)
    reply = await runtime.router.respond(request.user_id, request.message)
    return ChatResponse(
        content=reply.content,
        notes=reply.notes,
        is_command=reply.is_command,
        failed=reply.failed,
    )
