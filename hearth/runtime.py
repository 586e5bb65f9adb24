"""
Runtime — builds and owns every long-lived object of the process.

settings → engine/db → store → backend → workspace → sessions → engine
→ scheduler → router. Front-ends receive a started Runtime and never
construct collaborators themselves.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from .core.config import Settings, get_settings
from .core.database import close_db, create_engine, create_session_factory, init_db
from .core.flags import FeatureFlags, get_flags
from .core.redis import close_redis, init_bus
from .orchestrator.orchestrator import Engine
from .orchestrator.router import Router
from .orchestrator.scheduler import SchedulerLoop
from .orchestrator.session import SessionManager
from .services import realtime
from .services.llm import CompletionBackend, OllamaBackend
from .services.store import Store
from .services.workspace import Workspace

logger = logging.getLogger(__name__)


class Runtime:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        flags: Optional[FeatureFlags] = None,
        backend: Optional[CompletionBackend] = None,
        db_engine: Optional[AsyncEngine] = None,
    ):
        self.settings = settings or get_settings()
        self.flags = flags or get_flags()

        self.db_engine = db_engine or create_engine(self.settings.database_url)
        self.store = Store(create_session_factory(self.db_engine))
        self.backend = backend or OllamaBackend.from_settings(self.settings)
        self.workspace = Workspace(self.settings.workspace_path, self.store)
        self.sessions = SessionManager(self.store, self.settings.max_history)
        self.engine = Engine(
            store=self.store,
            sessions=self.sessions,
            backend=self.backend,
            workspace=self.workspace,
            system_prompt=self.settings.system_prompt_text(),
            keep_alive=self.settings.ollama_keep_alive,
            timezone=self.settings.scheduler_timezone,
        )
        self.scheduler = SchedulerLoop(
            store=self.store,
            engine=self.engine,
            poll_seconds=self.settings.scheduler_poll_seconds,
            timezone=self.settings.scheduler_timezone,
            user_allowed=self.settings.is_user_allowed,
        )
        self.router = Router(self)
        self.started = False

    async def start(self) -> None:
        if self.started:
            return
        init_bus(self.settings.redis_url, self.flags.use_redis)
        await init_db(self.db_engine)
        logger.info("Database ready: %s", self.settings.database_url)
        logger.info("Workspace: %s", self.workspace.path)

        if self.flags.warm_up_model and isinstance(self.backend, OllamaBackend):
            await self.backend.warm_up(keep_alive=self.settings.ollama_keep_alive)

        if self.flags.enable_scheduler:
            self.scheduler.start()
        else:
            logger.info("Scheduler disabled (FF_ENABLE_SCHEDULER=false)")

        self.started = True
        logger.info(
            "Hearth is ready (model=%s host=%s)",
            self.settings.ollama_model, self.settings.ollama_host,
        )
        await realtime.runtime_started(self.settings.ollama_model, self.flags.enable_scheduler)

    async def stop(self) -> None:
        if not self.started:
            return
        await realtime.runtime_stopping()
        self.scheduler.stop()
        if isinstance(self.backend, OllamaBackend):
            await self.backend.close()
        await close_redis()
        await close_db(self.db_engine)
        self.started = False
        logger.info("Hearth shut down")
