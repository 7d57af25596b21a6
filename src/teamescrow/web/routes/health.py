"""Health check endpoints for Teamescrow.

The liveness endpoint only proves the process answers. The readiness
endpoint also runs ``SELECT 1`` against the database and reports whether
the escrow background jobs are running.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text

from teamescrow.engine.service import EscrowEngine
from teamescrow.logging import get_logger
from teamescrow.web.deps import get_escrow

logger = get_logger(__name__)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str


class ReadinessResponse(BaseModel):
    """Readiness check response model.

    Attributes:
        status: "ok" or "unhealthy"
        database: "connected" or "disconnected"
        scheduler: Whether the release sweep is running
        pending_releases: Delayed releases currently scheduled
    """

    status: str
    database: str
    scheduler: bool
    pending_releases: int


def create_health_router() -> APIRouter:
    """Create health check router.

    Routes:
        GET /health/ - Liveness check
        GET /health/ready - Readiness check with database verification
    """
    router = APIRouter(prefix="/health", tags=["health"])

    @router.get("/", response_model=HealthResponse)
    async def health() -> dict[str, Any]:
        return {"status": "ok"}

    @router.get("/ready", response_model=ReadinessResponse)
    async def readiness(
        escrow: EscrowEngine = Depends(get_escrow),  # noqa: B008
    ) -> dict[str, Any]:
        scheduler = {
            "scheduler": escrow.scheduler.running,
            "pending_releases": escrow.scheduler.pending_timers,
        }
        try:
            async with escrow.ctx.session_factory() as session:
                await session.execute(text("SELECT 1"))
        except Exception as exc:
            logger.warning("readiness_check_failed", database="disconnected", error=str(exc))
            return {"status": "unhealthy", "database": "disconnected", **scheduler}

        logger.debug("readiness_check_passed", database="connected")
        return {"status": "ok", "database": "connected", **scheduler}

    return router
