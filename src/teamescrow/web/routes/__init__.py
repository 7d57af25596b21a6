"""FastAPI route definitions for the Teamescrow web API."""

from __future__ import annotations

from teamescrow.web.routes.health import (
    HealthResponse,
    ReadinessResponse,
    create_health_router,
)
from teamescrow.web.routes.members import create_members_router
from teamescrow.web.routes.payouts import create_payouts_router
from teamescrow.web.routes.projects import create_projects_router
from teamescrow.web.routes.tasks import create_tasks_router

__all__ = [
    "HealthResponse",
    "ReadinessResponse",
    "create_health_router",
    "create_members_router",
    "create_payouts_router",
    "create_projects_router",
    "create_tasks_router",
]
