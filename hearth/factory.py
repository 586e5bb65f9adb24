"""
FastAPI application factory.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.router import router
from .runtime import Runtime

logger = logging.getLogger(__name__)


def create_app(runtime: Optional[Runtime] = None) -> FastAPI:
    runtime = runtime or Runtime()
    settings = runtime.settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # A runtime started elsewhere (terminal + api) is stopped by its owner
        owned = not runtime.started
        logger.info("Starting Hearth API (env=%s)", settings.env)
        await runtime.start()
        logger.info(
            "Flags: redis=%s scheduler=%s warm_up=%s",
            runtime.flags.use_redis, runtime.flags.enable_scheduler, runtime.flags.warm_up_model,
        )
        yield
        if owned:
            await runtime.stop()

    app = FastAPI(
        title="Hearth",
        description="Local always-on assistant",
        version="0.1.0",
        docs_url="/docs" if settings.env == "development" else None,
        redoc_url="/redoc" if settings.env == "development" else None,
        lifespan=lifespan,
    )
    app.state.runtime = runtime

    # ── CORS ─────────────────────────────────────────────────────
    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Routes ───────────────────────────────────────────────────
    app.include_router(router)

    return app
