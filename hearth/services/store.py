"""
Persistent store — the only component that writes rows.

Every write runs in its own transaction under one asyncio lock
(single-writer discipline) and is committed before the call returns.
Reads open their own session and never take the lock.

Failures never disappear: a failed write raises StoreWriteFailure,
a failed read raises StoreError.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.errors import StoreError, StoreWriteFailure
from ..models.base import utcnow
from ..models.conversation import ConversationTurn
from ..models.job import ScheduledJob
from ..models.memory import MemoryFact
from ..models.workspace_file import WorkspaceFile

logger = logging.getLogger(__name__)


class Store:
    """Durable tables for turns, memory facts, scheduled jobs and workspace files."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self._write_lock = asyncio.Lock()

    @asynccontextmanager
    async def _write(self, operation: str) -> AsyncIterator[AsyncSession]:
        async with self._write_lock:
            async with self._session_factory() as db:
                try:
                    yield db
                    await db.commit()
                except SQLAlchemyError as e:
                    await db.rollback()
                    logger.error("Store write failed (%s): %s", operation, e)
                    raise StoreWriteFailure(f"{operation} failed: {e}") from e
                except BaseException:
                    await db.rollback()
                    raise

    @asynccontextmanager
    async def _read(self, operation: str) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as db:
            try:
                yield db
            except SQLAlchemyError as e:
                logger.error("Store read failed (%s): %s", operation, e)
                raise StoreError(f"{operation} failed: {e}") from e

    # ── Conversation turns ───────────────────────────────────────────

    @staticmethod
    async def _last_sequence(db: AsyncSession, user_id: str) -> int:
        result = await db.execute(
            select(func.max(ConversationTurn.sequence_no)).where(
                ConversationTurn.user_id == user_id
            )
        )
        return result.scalar() or 0

    async def append_turn(self, turn: ConversationTurn) -> ConversationTurn:
        """Persist one turn, assigning the user's next sequence_no."""
        async with self._write("append_turn") as db:
            turn.sequence_no = await self._last_sequence(db, turn.user_id) + 1
            db.add(turn)
            await db.flush()
        logger.debug("Appended turn %s#%d (%s)", turn.user_id, turn.sequence_no, turn.role)
        return turn

    async def append_turns(
        self,
        user_id: str,
        entries: Sequence[tuple[str, str]],
    ) -> list[ConversationTurn]:
        """Persist several (role, text) turns in one transaction: all or nothing."""
        turns: list[ConversationTurn] = []
        async with self._write("append_turns") as db:
            seq = await self._last_sequence(db, user_id)
            for role, text in entries:
                seq += 1
                turn = ConversationTurn(user_id=user_id, role=role, text=text, sequence_no=seq)
                db.add(turn)
                turns.append(turn)
            await db.flush()
        logger.debug("Appended %d turns for %s (last=#%d)", len(turns), user_id, seq)
        return turns

    async def load_recent_turns(self, user_id: str, limit: int) -> list[ConversationTurn]:
        """Most recent turns for a user, oldest first."""
        async with self._read("load_recent_turns") as db:
            result = await db.execute(
                select(ConversationTurn)
                .where(ConversationTurn.user_id == user_id)
                .order_by(ConversationTurn.sequence_no.desc())
                .limit(limit)
            )
            turns = list(result.scalars().all())
        turns.reverse()
        return turns

    async def clear_turns(self, user_id: str) -> int:
        async with self._write("clear_turns") as db:
            result = await db.execute(
                delete(ConversationTurn).where(ConversationTurn.user_id == user_id)
            )
        logger.info("Cleared %d turns for %s", result.rowcount, user_id)
        return result.rowcount

    # ── Memory facts ─────────────────────────────────────────────────

    async def save_memory(self, fact: MemoryFact) -> MemoryFact:
        async with self._write("save_memory") as db:
            db.add(fact)
            await db.flush()
        logger.info("Saved memory #%d for %s: %s", fact.id, fact.user_id, fact.text[:50])
        return fact

    async def list_memories(self, user_id: str) -> list[MemoryFact]:
        async with self._read("list_memories") as db:
            result = await db.execute(
                select(MemoryFact)
                .where(MemoryFact.user_id == user_id)
                .order_by(MemoryFact.id.asc())
            )
            return list(result.scalars().all())

    async def clear_memories(self, user_id: str) -> int:
        async with self._write("clear_memories") as db:
            result = await db.execute(
                delete(MemoryFact).where(MemoryFact.user_id == user_id)
            )
        logger.info("Forgot %d memories for %s", result.rowcount, user_id)
        return result.rowcount

    # ── Scheduled jobs ───────────────────────────────────────────────

    async def upsert_job(self, job: ScheduledJob) -> int:
        """Insert a new job or overwrite the row with the same id. Returns the id."""
        async with self._write("upsert_job") as db:
            if job.id is None:
                db.add(job)
            else:
                job = await db.merge(job)
            await db.flush()
            job_id = job.id
        logger.info("Upserted job #%d for %s (%s)", job_id, job.user_id, job.cron_expression)
        return job_id

    async def get_job(self, job_id: int) -> Optional[ScheduledJob]:
        async with self._read("get_job") as db:
            return await db.get(ScheduledJob, job_id)

    async def list_jobs(
        self,
        user_id: Optional[str] = None,
        include_inactive: bool = True,
    ) -> list[ScheduledJob]:
        query = select(ScheduledJob).order_by(ScheduledJob.id.asc())
        if user_id is not None:
            query = query.where(ScheduledJob.user_id == user_id)
        if not include_inactive:
            query = query.where(ScheduledJob.active == True)  # noqa: E712
        async with self._read("list_jobs") as db:
            result = await db.execute(query)
            return list(result.scalars().all())

    async def list_active_jobs(self, user_id: Optional[str] = None) -> list[ScheduledJob]:
        return await self.list_jobs(user_id=user_id, include_inactive=False)

    async def deactivate_job(self, job_id: int) -> bool:
        """Deactivate a job. False when no such job exists."""
        async with self._write("deactivate_job") as db:
            result = await db.execute(
                update(ScheduledJob)
                .where(ScheduledJob.id == job_id)
                .values(active=False)
            )
        found = result.rowcount > 0
        if found:
            logger.info("Deactivated job #%d", job_id)
        return found

    async def mark_job_fired(
        self,
        job_id: int,
        next_fire_at: datetime,
        fired_at: Optional[datetime] = None,
    ) -> None:
        async with self._write("mark_job_fired") as db:
            await db.execute(
                update(ScheduledJob)
                .where(ScheduledJob.id == job_id)
                .values(next_fire_at=next_fire_at, last_fired_at=fired_at or utcnow())
            )
        logger.debug("Job #%d next fire at %s", job_id, next_fire_at.isoformat())

    # ── Workspace files ──────────────────────────────────────────────

    async def log_file(self, filename: str, description: Optional[str] = None) -> WorkspaceFile:
        record = WorkspaceFile(filename=filename, description=description)
        async with self._write("log_file") as db:
            db.add(record)
            await db.flush()
        return record

    async def list_logged_files(self) -> list[WorkspaceFile]:
        async with self._read("list_logged_files") as db:
            result = await db.execute(
                select(WorkspaceFile).order_by(WorkspaceFile.created_at.desc())
            )
            return list(result.scalars().all())
