"""Task subsystem for Teamescrow.

Tasks reserve part of a project's budget for one team member. The reserved
amount stays committed while the task is open and after approval; a
cancelled task frees it, refunds it to whoever funded the task, and takes
it out of the project budget so the money exists in exactly one place.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

import structlog

from teamescrow.database.models.base import utcnow
from teamescrow.database.models.member import MemberStatus
from teamescrow.database.models.task import Task, TaskStatus
from teamescrow.engine.actors import Actor, require_owner_or_admin
from teamescrow.engine.budget import ensure_can_reserve
from teamescrow.engine.context import EngineContext, ProjectUnitOfWork, project_transaction
from teamescrow.engine.graph import get_member, get_task
from teamescrow.engine.money import ZERO, to_money
from teamescrow.engine.refunds import issue_refund
from teamescrow.engine.state_machine import (
    ASSIGNEE_TARGETS,
    TERMINAL_PROJECT_STATUSES,
    ensure_task_transition,
)
from teamescrow.errors import InvalidTransitionError, UnauthorizedError, ValidationError
from teamescrow.integrations.notifications import NotificationEvent

logger = structlog.get_logger(__name__)

DEFAULT_TASK_RATING = 5


class TaskService:
    """Creates tasks and drives them through their state machine."""

    def __init__(self, ctx: EngineContext) -> None:
        self.ctx = ctx
        self._logger = logger.bind(component="TaskService")

    async def create_task(
        self,
        actor: Actor,
        project_id: uuid.UUID,
        freelancer_id: uuid.UUID,
        description: str,
        amount: Any = ZERO,
        title: str | None = None,
        due_date: datetime | None = None,
        optional_link: str | None = None,
    ) -> Task:
        """Assign a new pending task to an accepted team member.

        The amount comes out of the client's escrowed budget, so the client
        is recorded as the payer of any funded task, whoever creates it.

        Args:
            actor: Project client or admin.
            project_id: Project the task belongs to.
            freelancer_id: Assignee; must be an accepted member.
            description: What needs doing.
            amount: Money to reserve for the task (may be zero).
            title: Optional short title.
            due_date: Optional deadline.
            optional_link: Optional reference link.

        Returns:
            The created Task.

        Raises:
            ValidationError: Missing description or bad amount.
            UnauthorizedError: Caller is not the client or an admin.
            NotFoundError: Project or member missing.
            InvalidTransitionError: Project closed or member not accepted.
            InsufficientBudgetError: Amount exceeds the remaining budget.
        """
        if not description or not description.strip():
            raise ValidationError("description is required")
        task_amount = to_money(amount)

        async with project_transaction(self.ctx, project_id) as uow:
            project = uow.project
            require_owner_or_admin(project, actor, "create tasks")
            if project.status in TERMINAL_PROJECT_STATUSES:
                raise InvalidTransitionError(
                    "project", project.status.value, "task_created", project.id
                )
            member = get_member(project, freelancer_id)
            if member.status != MemberStatus.accepted:
                raise InvalidTransitionError(
                    "member", member.status.value, "task_assigned", member.id
                )

            ensure_can_reserve(project, task_amount)

            task = Task(
                project_id=project.id,
                title=title,
                description=description.strip(),
                amount=task_amount,
                payer_id=project.client_id if task_amount > ZERO else None,
                due_date=due_date,
                optional_link=optional_link,
                status=TaskStatus.pending,
            )
            member.tasks.append(task)
            await uow.session.flush()

            self._logger.info(
                "task_created",
                task_id=str(task.id),
                freelancer_id=str(freelancer_id),
                amount=str(task_amount),
            )
            uow.outbox.add(
                member.freelancer_id,
                NotificationEvent.TASK_ASSIGNED,
                project_id=project.id,
                project_title=project.title,
                task_id=task.id,
                title=title,
                amount=str(task_amount),
                due_date=due_date,
            )

        return task

    async def transition(
        self,
        actor: Actor,
        project_id: uuid.UUID,
        task_id: uuid.UUID,
        target: TaskStatus,
        rating: int | None = None,
        review: str | None = None,
        cancellation_reason: str | None = None,
        cancellation_category: str | None = None,
    ) -> Task:
        """Move a task to ``target``.

        Only the assignee may start and submit work. Only the project client
        or an admin may request a revision, approve or cancel.

        Approval folds ``rating`` (default 5) into the freelancer's running
        mean and bumps their completed count. Cancellation refunds the task
        amount, untaxed, to the client who funded it and removes it from
        the project budget.

        Raises:
            UnauthorizedError: Caller may not make this move.
            AlreadyFinalError: Task is already approved or cancelled.
            InvalidTransitionError: Move not allowed from the current status.
            ValidationError: Rating outside 1-5.
        """
        if target == TaskStatus.approved:
            task_rating = DEFAULT_TASK_RATING if rating is None else int(rating)
            if not 1 <= task_rating <= 5:
                raise ValidationError("rating must be between 1 and 5")

        async with project_transaction(self.ctx, project_id) as uow:
            project = uow.project
            member, task = get_task(project, task_id)

            if target in ASSIGNEE_TARGETS:
                if actor.user_id != member.freelancer_id:
                    raise UnauthorizedError("Only the assigned freelancer can update work progress")
            else:
                require_owner_or_admin(project, actor, f"mark tasks as {target.value}")

            previous = task.status
            ensure_task_transition(previous, target, task.id)
            task.status = target

            if target == TaskStatus.approved:
                await self.ctx.directory.record_task_rating(
                    uow.session, member.freelancer_id, task_rating
                )
                task.rating = task_rating
                task.review = review
                task.completed_at = utcnow()
                uow.outbox.add(
                    member.freelancer_id,
                    NotificationEvent.TASK_APPROVED,
                    project_id=project.id,
                    task_id=task.id,
                    rating=task_rating,
                    review=review,
                )

            elif target == TaskStatus.cancelled:
                task.cancellation_reason = cancellation_reason
                task.cancellation_category = cancellation_category
                task.completed_at = utcnow()
                await self._refund_cancelled(uow, task)
                for recipient in (member.freelancer_id, project.client_id):
                    uow.outbox.add(
                        recipient,
                        NotificationEvent.TASK_CANCELLED,
                        project_id=project.id,
                        task_id=task.id,
                        reason=cancellation_reason,
                        category=cancellation_category,
                    )

            elif target == TaskStatus.submitted:
                uow.outbox.add(
                    project.client_id,
                    NotificationEvent.TASK_SUBMITTED,
                    project_id=project.id,
                    task_id=task.id,
                    freelancer_id=member.freelancer_id,
                )

            elif target == TaskStatus.revision:
                uow.outbox.add(
                    member.freelancer_id,
                    NotificationEvent.TASK_REVISION,
                    project_id=project.id,
                    task_id=task.id,
                )

            await uow.session.flush()
            self._logger.info(
                "task_transition",
                task_id=str(task.id),
                from_status=previous.value,
                to_status=target.value,
            )

        return task

    async def _refund_cancelled(self, uow: ProjectUnitOfWork, task: Task) -> None:
        """Return a cancelled task's reserved amount to its payer."""
        if task.amount <= ZERO:
            return
        project = uow.project
        payer_id = task.payer_id or project.client_id
        project.budget = project.budget - task.amount
        await issue_refund(
            uow.session,
            self.ctx.directory,
            uow.outbox,
            recipient_id=payer_id,
            gross=task.amount,
            tax_rate=Decimal("0"),
            reason=f"Cancelled task refund for team project: {project.title}",
            project_id=project.id,
        )
