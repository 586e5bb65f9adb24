"""
Shared fixtures: a file-backed SQLite store, a scripted model backend and
a fully wired Runtime with the scheduler and warm-up switched off.
"""

import asyncio
from datetime import datetime, timezone

import pytest

from hearth.core.config import Settings
from hearth.core.database import close_db, create_engine, create_session_factory, init_db
from hearth.core.flags import FeatureFlags
from hearth.orchestrator.orchestrator import Engine
from hearth.orchestrator.session import SessionManager
from hearth.runtime import Runtime
from hearth.services.store import Store
from hearth.services.workspace import Workspace


class FakeBackend:
    """
    Scripted completion backend. Pops queued replies in order; an
    Exception instance in the queue is raised instead and an asyncio.Event
    holds the call until it is set. With an empty queue it echoes the
    last user message.
    """

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.calls: list[tuple[list[dict], int]] = []

    def queue(self, *replies) -> None:
        self.replies.extend(replies)

    async def complete(self, messages: list[dict], keep_alive: int = -1) -> str:
        self.calls.append((messages, keep_alive))
        if self.replies:
            reply = self.replies.pop(0)
            if isinstance(reply, Exception):
                raise reply
            if isinstance(reply, asyncio.Event):
                await reply.wait()
                return f"echo: {messages[-1]['content']}"
            return reply
        return f"echo: {messages[-1]['content']}"


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def at(hour: int, minute: int, second: int = 0, day: int = 1) -> datetime:
    return datetime(2024, 1, day, hour, minute, second, tzinfo=timezone.utc)


@pytest.fixture
async def db_engine(tmp_path):
    # A file, not :memory:, so every pooled connection sees the same database
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'hearth-test.db'}", echo=False)
    await init_db(engine)
    yield engine
    await close_db(engine)


@pytest.fixture
def store(db_engine) -> Store:
    return Store(create_session_factory(db_engine))


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(at(9, 2))


@pytest.fixture
def workspace(tmp_path, store) -> Workspace:
    return Workspace(tmp_path / "workspace", store)


@pytest.fixture
def sessions(store) -> SessionManager:
    return SessionManager(store, max_history=50)


@pytest.fixture
def engine(store, sessions, backend, workspace, clock) -> Engine:
    return Engine(
        store=store,
        sessions=sessions,
        backend=backend,
        workspace=workspace,
        system_prompt="You are a test assistant.",
        keep_alive=-1,
        clock=clock,
    )


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'runtime.db'}",
        WORKSPACE_PATH=str(tmp_path / "runtime-workspace"),
        SOUL_FILE=str(tmp_path / "missing-soul.md"),
        OLLAMA_MODEL="test-model",
        ALLOWED_USERS="",
    )


@pytest.fixture
def flags() -> FeatureFlags:
    return FeatureFlags(
        FF_USE_REDIS=False,
        FF_ENABLE_SCHEDULER=False,
        FF_WARM_UP_MODEL=False,
    )


@pytest.fixture
async def runtime(settings, flags, backend):
    rt = Runtime(settings=settings, flags=flags, backend=backend)
    await rt.start()
    yield rt
    await rt.stop()
