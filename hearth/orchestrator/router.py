"""
Front-end entry point.

Two routing cases:
  1. A registered slash command → run it directly (no model call).
  2. Everything else → a conversation turn through the engine.

Unknown slash commands are treated as ordinary chat. HearthError from
either path becomes a visible reply, so front-ends never see exceptions.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..core.errors import HearthError
from ..core.guardrails import check_input
from .commands import get_command, parse_command
from .orchestrator import SOURCE_FRONTEND

if TYPE_CHECKING:
    from ..runtime import Runtime

logger = logging.getLogger(__name__)


@dataclass
class Reply:
    content: str
    notes: list[str] = field(default_factory=list)
    is_command: bool = False
    failed: bool = False

    def render(self) -> str:
        parts = [self.content] if self.content else []
        parts.extend(self.notes)
        return "\n\n".join(parts)


class Router:
    def __init__(self, runtime: "Runtime"):
        self.runtime = runtime

    async def respond(self, user_id: str, text: str, source: str = SOURCE_FRONTEND) -> Reply:
        check = check_input(text, user_id)
        if not check.allowed:
            return Reply(content=check.reason or "Message rejected.", failed=True)

        parsed = parse_command(text)
        if parsed is not None:
            name, args = parsed
            cmd = get_command(name)
            if cmd is not None:
                logger.info("Command /%s from %s", name, user_id)
                try:
                    content = await cmd.handler(self.runtime, user_id, args)
                except HearthError as e:
                    logger.warning("Command /%s failed: %s", name, e)
                    return Reply(content=e.reply(), is_command=True, failed=True)
                return Reply(content=content, is_command=True)

        logger.info("Message from %s: %s", user_id, text[:80])
        try:
            result = await self.runtime.engine.handle_turn(user_id, text, source=source)
        except HearthError as e:
            return Reply(content=e.reply(), failed=True)
        except Exception:
            logger.exception("Turn for %s crashed", user_id)
            return Reply(content=HearthError.user_message, failed=True)
        return Reply(content=result.content, notes=result.notes)
