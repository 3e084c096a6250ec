from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gitivity.api.routes import router as api_router
from gitivity.core.config import settings
from gitivity.core.logging import configure_logging
from gitivity.db import async_session_maker, init_db
from gitivity.services.runtime import GitivityRuntime

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Startup
    configure_logging()
    if getattr(app.state, "runtime", None) is None:
        await init_db()
        app.state.runtime = GitivityRuntime(session_maker=async_session_maker)
    runtime: GitivityRuntime = app.state.runtime
    runtime.start_maintenance()
    logger.info("Gitivity started", version=settings.app_version, environment=settings.environment)
    yield
    # Shutdown
    await runtime.stop_maintenance()


def create_app(runtime: GitivityRuntime | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Pass ``runtime`` to supply pre-built services (tests do); otherwise one
    is built against the configured database on startup.
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="GitHub profile analysis and Gitivity scoring API",
        lifespan=lifespan,
    )
    app.state.runtime = runtime

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy", "version": settings.app_version}

    return app


app = create_app()
