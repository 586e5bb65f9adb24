"""
Main orchestration loop.

Receive turn → lock session → build prompt → call model → parse
directives → apply side effects → record turn → reply.

Every producer (HTTP front-end, terminal, scheduler) enters through
Engine.handle_turn. The engine holds no cross-user lock: the only
serialisation is the per-user session, held for exactly one turn.

Error policy:
  - BackendUnavailable / StoreError abort the turn. Neither the user
    text nor the reply is recorded.
  - A bad directive (malformed block, invalid cron, workspace error)
    is dropped with a note and the turn carries on.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional, Sequence

from ..core.errors import BackendUnavailable, InvalidCronExpression, MalformedDirective
from ..models.base import utcnow
from ..models.conversation import ROLE_ASSISTANT, ROLE_USER
from ..models.job import ScheduledJob
from ..models.memory import SOURCE_DIRECTIVE, MemoryFact
from ..services import realtime
from ..services.llm import CompletionBackend
from ..services.memory import format_memories_for_prompt
from ..services.store import Store
from ..services.workspace import Workspace
from .cron import compute_next
from .directives import (
    Directive,
    SaveFileDirective,
    SaveMemoryDirective,
    ScheduleDirective,
    parse_directives,
)
from .session import Session, SessionManager

logger = logging.getLogger(__name__)

SOURCE_FRONTEND = "frontend"
SOURCE_SCHEDULER = "scheduler"

DIRECTIVE_INSTRUCTIONS = """## Actions
You can act by adding fenced blocks to your reply. They are hidden from the user.

To schedule a recurring task, add a cron block (5 fields: minute hour day month weekday).
The message is sent back to you every time the schedule fires:
```cron
{"schedule": "0 9 * * *", "task": "Morning quote", "message": "Give me a motivational quote"}
```

To remember an important fact about the user:
```memory
User's name is Sam
```

To save a file to the user's workspace:
```save:hello.py
print("hello")
```
"""


@dataclass
class TurnResult:
    """What the engine returns after handling a turn."""

    content: str = ""                                       # Visible reply
    notes: list[str] = field(default_factory=list)          # Side-effect confirmations / warnings
    directives: list[Directive] = field(default_factory=list)
    errors: list[MalformedDirective] = field(default_factory=list)
    job_ids: list[int] = field(default_factory=list)
    saved_files: list[str] = field(default_factory=list)
    source: str = SOURCE_FRONTEND
    elapsed_ms: int = 0

    def render(self) -> str:
        """Reply followed by notes, the way chat front-ends show it."""
        parts = [self.content] if self.content else []
        parts.extend(self.notes)
        return "\n\n".join(parts)


class Engine:
    def __init__(
        self,
        store: Store,
        sessions: SessionManager,
        backend: CompletionBackend,
        workspace: Optional[Workspace] = None,
        system_prompt: str = "",
        keep_alive: int = -1,
        timezone: str = "UTC",
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.sessions = sessions
        self.backend = backend
        self.workspace = workspace
        self.system_prompt = system_prompt
        self.keep_alive = keep_alive
        self.timezone = timezone
        self.clock = clock

    # ── Prompt ───────────────────────────────────────────────────────

    def build_messages(
        self,
        session: Session,
        memories: Sequence[MemoryFact],
        text: str,
    ) -> list[dict]:
        sections = [self.system_prompt.strip()]
        memory_section = format_memories_for_prompt(memories)
        if memory_section:
            sections.append(memory_section)
        sections.append(DIRECTIVE_INSTRUCTIONS.strip())

        messages = [{"role": "system", "content": "\n\n".join(s for s in sections if s)}]
        messages.extend(session.messages())
        messages.append({"role": ROLE_USER, "content": text})
        return messages

    # ── Turn ─────────────────────────────────────────────────────────

    async def handle_turn(
        self,
        user_id: str,
        text: str,
        source: str = SOURCE_FRONTEND,
    ) -> TurnResult:
        start = time.monotonic()

        async with self.sessions.session(user_id) as session:
            memories = await self.store.list_memories(user_id)
            messages = self.build_messages(session, memories, text)

            try:
                raw = await self.backend.complete(messages, keep_alive=self.keep_alive)
            except BackendUnavailable as e:
                logger.warning("Turn for %s failed (%s): %s", user_id, source, e)
                await realtime.turn_failed(user_id, {"source": source, "error": str(e)})
                raise

            parsed = parse_directives(raw)
            result = TurnResult(
                content=parsed.visible_reply,
                directives=list(parsed.directives),
                errors=list(parsed.errors),
                source=source,
            )
            for error in parsed.errors:
                result.notes.append(f"⚠️ Directive error: {error}")

            # Side effects land before the turn is recorded, so the next
            # turn already sees the new memories and jobs.
            await self._apply_directives(user_id, parsed.directives, result)

            turns = await self.store.append_turns(
                user_id,
                [(ROLE_USER, text), (ROLE_ASSISTANT, result.content)],
            )
            session.extend(turns)

        result.elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "Turn %s/%s: %dms | directives=%d notes=%d",
            user_id, source, result.elapsed_ms, len(result.directives), len(result.notes),
        )
        await realtime.turn_completed(user_id, {
            "source": source,
            "elapsed_ms": result.elapsed_ms,
            "job_ids": result.job_ids,
            "saved_files": result.saved_files,
        })
        return result

    # ── Directives ───────────────────────────────────────────────────

    async def _apply_directives(
        self,
        user_id: str,
        directives: Sequence[Directive],
        result: TurnResult,
    ) -> None:
        scheduled: set[tuple[str, str]] = set()

        for directive in directives:
            if isinstance(directive, ScheduleDirective):
                key = (directive.cron_expression, directive.injected_prompt)
                if key in scheduled:
                    logger.info("Skipping duplicate schedule directive for %s: %s", user_id, key)
                    continue
                scheduled.add(key)
                try:
                    job = await self.schedule_job(
                        user_id,
                        directive.cron_expression,
                        directive.task_description,
                        directive.injected_prompt,
                    )
                except InvalidCronExpression as e:
                    result.notes.append(f"❌ Error scheduling: {e}")
                    continue
                result.job_ids.append(job.id)
                result.notes.append(
                    f"✅ Scheduled job #{job.id}: {job.task_description}\n"
                    f"Schedule: {job.cron_expression}"
                )

            elif isinstance(directive, SaveFileDirective):
                if self.workspace is None:
                    result.notes.append(f"❌ Error saving file: no workspace configured for {directive.filename}")
                    continue
                try:
                    path = await self.workspace.write_file(directive.filename, directive.content)
                except (OSError, UnicodeError) as e:
                    logger.warning("Failed to save %s: %s", directive.filename, e)
                    result.notes.append(f"❌ Error saving file: {e}")
                    continue
                result.saved_files.append(path.name)
                result.notes.append(f"💾 Saved {path.name} to workspace")

            elif isinstance(directive, SaveMemoryDirective):
                await self.store.save_memory(
                    MemoryFact(user_id=user_id, text=directive.text, source=SOURCE_DIRECTIVE)
                )
                result.notes.append(f"🧠 Remembered: {directive.text}")

    # ── Operations shared with the command surface ───────────────────

    async def schedule_job(
        self,
        user_id: str,
        cron_expression: str,
        task_description: str,
        injected_prompt: str,
    ) -> ScheduledJob:
        """Validate and persist a new job. Raises InvalidCronExpression."""
        now = self.clock()
        job = ScheduledJob(
            user_id=user_id,
            cron_expression=cron_expression,
            task_description=task_description,
            injected_prompt=injected_prompt,
            created_at=now,
            next_fire_at=compute_next(cron_expression, now, self.timezone),
            active=True,
        )
        await self.store.upsert_job(job)
        logger.info(
            "Added job #%d for %s: '%s' (%s) next=%s",
            job.id, user_id, task_description, cron_expression, job.next_fire_at.isoformat(),
        )
        await realtime.job_scheduled(user_id, job.id, cron_expression)
        return job

    async def clear_history(self, user_id: str) -> int:
        """Delete a user's stored turns and empty their window."""
        async with self.sessions.session(user_id) as session:
            count = await self.store.clear_turns(user_id)
            session.reset()
        return count
