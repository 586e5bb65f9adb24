"""
Terminal front-end — a REPL for one local user.

Input is read on a worker thread so the event loop keeps running the
scheduler while the prompt waits. Scheduled replies for the terminal
user are printed as they arrive.
"""

import asyncio
import logging
from typing import Callable, Optional

from .models.job import ScheduledJob
from .orchestrator.orchestrator import TurnResult
from .runtime import Runtime

logger = logging.getLogger(__name__)

PROMPT = "you> "
EXIT_WORDS = {"quit", "exit"}


class TerminalFrontend:
    def __init__(
        self,
        runtime: Runtime,
        user_id: Optional[str] = None,
        read_line: Callable[[str], str] = input,
        write: Callable[[str], None] = print,
    ):
        self.runtime = runtime
        self.user_id = user_id or runtime.settings.terminal_user_id
        self.read_line = read_line
        self.write = write
        runtime.scheduler.add_listener(self.on_scheduled_reply)

    async def on_scheduled_reply(self, job: ScheduledJob, result: TurnResult) -> None:
        if job.user_id != self.user_id:
            return
        self.write(f"\n⏰ [{job.task_description}]\n{result.render()}\n")

    async def run(self) -> None:
        self.write("🏠 Hearth terminal. Type /help for commands, 'quit' to leave.")
        while True:
            try:
                line = await asyncio.to_thread(self.read_line, PROMPT)
            except (EOFError, KeyboardInterrupt):
                self.write("")
                break

            text = line.strip()
            if not text:
                continue
            if text.lower() in EXIT_WORDS:
                break

            reply = await self.runtime.router.respond(self.user_id, text)
            self.write(f"hearth> {reply.render()}\n")

        logger.info("Terminal session for %s ended", self.user_id)
