"""Project endpoints for Teamescrow.

This module exposes the project lifecycle over REST:
- Create, list, get, edit and delete projects
- Top up the budget and change the project status
- Launch the team and trigger the auto-recruiter
- Read the budget summary and the role/category catalogue

Engine errors are not caught here; the application's EscrowError handler
turns them into JSON error bodies.

Example:
    >>> from fastapi import FastAPI
    >>> from teamescrow.web.routes.projects import create_projects_router
    >>>
    >>> app = FastAPI()
    >>> app.include_router(create_projects_router())
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel

from teamescrow.database.models.project import ProjectStatus
from teamescrow.engine.actors import Actor
from teamescrow.engine.budget import BudgetSummary
from teamescrow.engine.catalogue import CATEGORIES, ROLES
from teamescrow.engine.projects import ProjectDraft, ProjectPatch
from teamescrow.engine.recruiter import RecruitmentResult
from teamescrow.engine.service import EscrowEngine
from teamescrow.logging import get_logger
from teamescrow.web.deps import get_actor, get_escrow
from teamescrow.web.schemas import ProjectResponse

logger = get_logger(__name__)


class FundsRequest(BaseModel):
    """Request schema for topping up a project budget."""

    amount: Decimal


class StatusUpdate(BaseModel):
    """Request schema for a project status change."""

    status: str


class CatalogueResponse(BaseModel):
    """Roles and categories offered when creating a project."""

    roles: list[str]
    categories: list[str]


def parse_project_status(value: str) -> ProjectStatus:
    """Look up a project status by name.

    Raises:
        HTTPException: 400 if the status is unknown.
    """
    try:
        return ProjectStatus[value]
    except KeyError:
        logger.warning("invalid_status", status=value)
        raise HTTPException(status_code=400, detail=f"Invalid status: {value}")


def create_projects_router() -> APIRouter:
    """Create the projects router.

    Routes:
        GET /projects/ - List projects, filtered by client and status
        GET /projects/catalogue - Role and category catalogue
        GET /projects/{id} - Get a project with members, tasks and payouts
        POST /projects/ - Create a project and escrow its budget
        PATCH /projects/{id} - Edit a project
        DELETE /projects/{id} - Delete a not-started project
        POST /projects/{id}/funds - Add funds to the budget
        PUT /projects/{id}/status - Change the project status
        POST /projects/{id}/launch - Launch the accepted team
        POST /projects/{id}/auto-hire - Run the auto-recruiter
        GET /projects/{id}/budget - Budget summary and member earnings
    """
    router = APIRouter(prefix="/projects", tags=["projects"])

    @router.get("/", response_model=list[ProjectResponse])
    async def list_projects_endpoint(
        client_id: UUID | None = None,
        status: str | None = None,
        escrow: EscrowEngine = Depends(get_escrow),  # noqa: B008
    ) -> list[ProjectResponse]:
        status_filter = parse_project_status(status) if status is not None else None
        projects = await escrow.projects.list_projects(client_id, status_filter)
        logger.info("projects_listed", count=len(projects), status=status)
        return [ProjectResponse.model_validate(p) for p in projects]

    @router.get("/catalogue", response_model=CatalogueResponse)
    async def catalogue_endpoint() -> CatalogueResponse:
        return CatalogueResponse(roles=list(ROLES), categories=list(CATEGORIES))

    @router.get("/{project_id}", response_model=ProjectResponse)
    async def get_project_endpoint(
        project_id: UUID,
        escrow: EscrowEngine = Depends(get_escrow),  # noqa: B008
    ) -> ProjectResponse:
        project = await escrow.projects.get_project(project_id)
        return ProjectResponse.model_validate(project)

    @router.post("/", response_model=ProjectResponse, status_code=201)
    async def create_project_endpoint(
        draft: ProjectDraft,
        actor: Actor = Depends(get_actor),  # noqa: B008
        escrow: EscrowEngine = Depends(get_escrow),  # noqa: B008
    ) -> ProjectResponse:
        project = await escrow.projects.create_project(actor, draft)
        logger.info("project_created_via_api", project_id=str(project.id))
        return ProjectResponse.model_validate(project)

    @router.patch("/{project_id}", response_model=ProjectResponse)
    async def update_project_endpoint(
        project_id: UUID,
        patch: ProjectPatch,
        actor: Actor = Depends(get_actor),  # noqa: B008
        escrow: EscrowEngine = Depends(get_escrow),  # noqa: B008
    ) -> ProjectResponse:
        project = await escrow.projects.update_project(actor, project_id, patch)
        return ProjectResponse.model_validate(project)

    @router.delete("/{project_id}", status_code=204)
    async def delete_project_endpoint(
        project_id: UUID,
        actor: Actor = Depends(get_actor),  # noqa: B008
        escrow: EscrowEngine = Depends(get_escrow),  # noqa: B008
    ) -> Response:
        await escrow.projects.delete_project(actor, project_id)
        logger.info("project_deleted_via_api", project_id=str(project_id))
        return Response(status_code=204)

    @router.post("/{project_id}/funds", response_model=ProjectResponse)
    async def add_funds_endpoint(
        project_id: UUID,
        funds: FundsRequest,
        actor: Actor = Depends(get_actor),  # noqa: B008
        escrow: EscrowEngine = Depends(get_escrow),  # noqa: B008
    ) -> ProjectResponse:
        project = await escrow.projects.add_funds(actor, project_id, funds.amount)
        return ProjectResponse.model_validate(project)

    @router.put("/{project_id}/status", response_model=ProjectResponse)
    async def update_status_endpoint(
        project_id: UUID,
        status_update: StatusUpdate,
        actor: Actor = Depends(get_actor),  # noqa: B008
        escrow: EscrowEngine = Depends(get_escrow),  # noqa: B008
    ) -> ProjectResponse:
        target = parse_project_status(status_update.status)
        project = await escrow.projects.update_status(actor, project_id, target)
        return ProjectResponse.model_validate(project)

    @router.post("/{project_id}/launch", response_model=ProjectResponse)
    async def launch_project_endpoint(
        project_id: UUID,
        actor: Actor = Depends(get_actor),  # noqa: B008
        escrow: EscrowEngine = Depends(get_escrow),  # noqa: B008
    ) -> ProjectResponse:
        project = await escrow.projects.launch_project(actor, project_id)
        return ProjectResponse.model_validate(project)

    @router.post("/{project_id}/auto-hire", response_model=RecruitmentResult)
    async def auto_hire_endpoint(
        project_id: UUID,
        actor: Actor = Depends(get_actor),  # noqa: B008
        escrow: EscrowEngine = Depends(get_escrow),  # noqa: B008
    ) -> RecruitmentResult:
        result = await escrow.recruiter.recruit(project_id, actor=actor)
        logger.info(
            "auto_hire_requested",
            project_id=str(project_id),
            invited=len(result.invited),
        )
        return result

    @router.get("/{project_id}/budget", response_model=BudgetSummary)
    async def budget_endpoint(
        project_id: UUID,
        escrow: EscrowEngine = Depends(get_escrow),  # noqa: B008
    ) -> BudgetSummary:
        return await escrow.projects.budget_summary(project_id)

    return router
