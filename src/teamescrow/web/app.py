"""FastAPI application factory for Teamescrow.

This module provides the application factory that creates and configures
a FastAPI application with:
- CORS middleware for cross-origin requests
- Request logging middleware with correlation IDs
- Database pool and escrow engine lifecycle management
- A JSON error handler for engine errors
- Health, project, member, task and payout routers

Example usage:
    >>> from teamescrow.config import TeamescrowConfig
    >>> from teamescrow.web.app import create_app
    >>>
    >>> app = create_app(TeamescrowConfig())
    >>>
    >>> import uvicorn
    >>> uvicorn.run(app, host="0.0.0.0", port=8000)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from teamescrow import __version__
from teamescrow.config import TeamescrowConfig
from teamescrow.database.connection import get_engine, get_session_factory
from teamescrow.engine.service import EscrowEngine
from teamescrow.errors import EscrowError
from teamescrow.logging import get_logger
from teamescrow.web.middleware import RequestLoggingMiddleware
from teamescrow.web.routes import (
    create_health_router,
    create_members_router,
    create_payouts_router,
    create_projects_router,
    create_tasks_router,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage the database pool and the escrow engine's background jobs.

    On startup the engine is wired to a fresh session factory and its
    release sweep and invitation expiry sweep are started. On shutdown the
    jobs are stopped before the pool is disposed.
    """
    config: TeamescrowConfig = app.state.config

    logger.info("app_startup_begin", host=config.web.host, port=config.web.port)

    engine = get_engine(config.database)
    session_factory = get_session_factory(engine)
    escrow = EscrowEngine.build(session_factory, config)

    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.escrow = escrow

    await escrow.start()
    logger.info(
        "database_pool_initialized",
        pool_size=config.database.pool_size,
        max_overflow=config.database.max_overflow,
    )

    yield

    logger.info("app_shutdown_begin")
    await escrow.stop()
    await engine.dispose()
    logger.info("database_pool_disposed")


async def escrow_error_handler(request: Request, exc: EscrowError) -> JSONResponse:
    """Render an engine error as ``{"error_code", "message", ...}``."""
    logger.warning(
        "request_rejected",
        path=request.url.path,
        error_code=exc.code,
        message=exc.message,
    )
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


def create_app(config: TeamescrowConfig | None = None) -> FastAPI:
    """Create and configure a FastAPI application.

    Args:
        config: Optional TeamescrowConfig. If None, creates default config.

    Returns:
        Configured FastAPI application instance.
    """
    if config is None:
        config = TeamescrowConfig()

    app = FastAPI(
        title="Teamescrow",
        version=__version__,
        description="Team project escrow and budget allocation engine",
        lifespan=lifespan,
    )
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.web.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_exception_handler(EscrowError, escrow_error_handler)  # type: ignore[arg-type]

    app.include_router(create_health_router())
    app.include_router(create_projects_router())
    app.include_router(create_members_router())
    app.include_router(create_tasks_router())
    app.include_router(create_payouts_router())

    logger.info("app_created", cors_origins=config.web.cors_origins, version=__version__)

    return app
