"""Task endpoints for Teamescrow.

Tasks belong to a project and are assigned to one accepted member. Status
changes go through a single endpoint; the engine decides who may make
which move.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from teamescrow.database.models.task import TaskStatus
from teamescrow.engine.actors import Actor
from teamescrow.engine.graph import get_task
from teamescrow.engine.service import EscrowEngine
from teamescrow.logging import get_logger
from teamescrow.web.deps import get_actor, get_escrow
from teamescrow.web.schemas import TaskResponse

logger = get_logger(__name__)


class TaskCreate(BaseModel):
    """Request schema for creating a task.

    Attributes:
        freelancer_id: Assignee, an accepted member of the project
        description: What needs doing
        amount: Money reserved from the project budget
        title: Optional short title
        due_date: Optional deadline
        optional_link: Optional reference link
    """

    freelancer_id: UUID
    description: str = Field(..., min_length=1)
    amount: Decimal = Decimal("0")
    title: str | None = None
    due_date: datetime | None = None
    optional_link: str | None = None


class TaskStatusUpdate(BaseModel):
    """Request schema for a task status change."""

    status: str
    rating: int | None = None
    review: str | None = None
    cancellation_reason: str | None = None
    cancellation_category: str | None = None


def create_tasks_router() -> APIRouter:
    """Create the tasks router.

    Routes:
        GET /projects/{id}/tasks - List the project's tasks
        GET /projects/{id}/tasks/{task_id} - Get a task
        POST /projects/{id}/tasks - Create a task
        PUT /projects/{id}/tasks/{task_id}/status - Move a task
    """
    router = APIRouter(prefix="/projects/{project_id}/tasks", tags=["tasks"])

    @router.get("/", response_model=list[TaskResponse])
    async def list_tasks_endpoint(
        project_id: UUID,
        status: str | None = None,
        escrow: EscrowEngine = Depends(get_escrow),  # noqa: B008
    ) -> list[TaskResponse]:
        project = await escrow.projects.get_project(project_id)
        tasks = [t for m in project.members for t in m.tasks]
        if status is not None:
            tasks = [t for t in tasks if t.status.value == status]
        return [TaskResponse.model_validate(t) for t in tasks]

    @router.get("/{task_id}", response_model=TaskResponse)
    async def get_task_endpoint(
        project_id: UUID,
        task_id: UUID,
        escrow: EscrowEngine = Depends(get_escrow),  # noqa: B008
    ) -> TaskResponse:
        project = await escrow.projects.get_project(project_id)
        _, task = get_task(project, task_id)
        return TaskResponse.model_validate(task)

    @router.post("/", response_model=TaskResponse, status_code=201)
    async def create_task_endpoint(
        project_id: UUID,
        task_data: TaskCreate,
        actor: Actor = Depends(get_actor),  # noqa: B008
        escrow: EscrowEngine = Depends(get_escrow),  # noqa: B008
    ) -> TaskResponse:
        task = await escrow.tasks.create_task(
            actor,
            project_id,
            task_data.freelancer_id,
            task_data.description,
            amount=task_data.amount,
            title=task_data.title,
            due_date=task_data.due_date,
            optional_link=task_data.optional_link,
        )
        logger.info("task_created_via_api", task_id=str(task.id))
        return TaskResponse.model_validate(task)

    @router.put("/{task_id}/status", response_model=TaskResponse)
    async def update_task_status_endpoint(
        project_id: UUID,
        task_id: UUID,
        status_update: TaskStatusUpdate,
        actor: Actor = Depends(get_actor),  # noqa: B008
        escrow: EscrowEngine = Depends(get_escrow),  # noqa: B008
    ) -> TaskResponse:
        try:
            target = TaskStatus[status_update.status]
        except KeyError:
            logger.warning("invalid_status_update", status=status_update.status)
            raise HTTPException(status_code=400, detail=f"Invalid status: {status_update.status}")

        task = await escrow.tasks.transition(
            actor,
            project_id,
            task_id,
            target,
            rating=status_update.rating,
            review=status_update.review,
            cancellation_reason=status_update.cancellation_reason,
            cancellation_category=status_update.cancellation_category,
        )
        return TaskResponse.model_validate(task)

    return router
