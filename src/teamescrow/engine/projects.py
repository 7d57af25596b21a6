"""Project lifecycle for Teamescrow.

Creating a project debits its budget from the client. From then on the
budget only moves through this module: top-ups and increases debit the
payer, decreases refund the difference net of the processing tax, and
closing a project (completed or cancelled) refunds the uncommitted
remainder once, net of the same tax.
"""

from __future__ import annotations

import math
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

import structlog
from pydantic import BaseModel, Field

from teamescrow.database.models.base import as_utc, utcnow
from teamescrow.database.models.member import MemberStatus
from teamescrow.database.models.project import Project, ProjectStatus, TeamSelectionType
from teamescrow.database.queries import projects as project_queries
from teamescrow.engine.actors import Actor, ActorRole, require_owner_or_admin
from teamescrow.engine.budget import (
    BudgetSummary,
    committed,
    open_task_ids,
    remaining,
    summarize,
)
from teamescrow.engine.catalogue import DEFAULT_ROLE
from teamescrow.engine.context import EngineContext, ProjectUnitOfWork, project_transaction
from teamescrow.engine.money import ZERO, to_money
from teamescrow.engine.recruiter import AutoRecruiter
from teamescrow.engine.refunds import issue_refund
from teamescrow.engine.state_machine import (
    EDITABLE_PROJECT_STATUSES,
    LAUNCHABLE_PROJECT_STATUSES,
    QUIESCENT_PROJECT_STATUSES,
    TERMINAL_PROJECT_STATUSES,
    ensure_project_transition,
)
from teamescrow.errors import (
    IncompleteTasksError,
    InsufficientBudgetError,
    InvalidTransitionError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from teamescrow.integrations.notifications import NotificationEvent, Outbox

logger = structlog.get_logger(__name__)

SECONDS_PER_DAY = 86400


class TeamRole(BaseModel):
    """A role wanted on the team.

    Attributes:
        role: Role name, e.g. "Backend Developer".
        quantity: Number of freelancers wanted in the role.
        skills: Skills the recruiter matches candidates against.
        experience_level: Optional seniority hint.
    """

    role: str
    quantity: int
    skills: list[str] = Field(default_factory=list)
    experience_level: str | None = None


class ProjectDraft(BaseModel):
    """Everything a client supplies to create a project."""

    title: str
    description: str
    category: str
    budget: Decimal
    team_size: int
    team_roles: list[TeamRole]
    start_date: datetime
    end_date: datetime
    skills_required: list[str] = Field(default_factory=list)
    team_selection_type: TeamSelectionType = TeamSelectionType.mixed
    priority: str = "medium"
    project_type: str = "one-time"
    additional_notes: str | None = None


class ProjectPatch(BaseModel):
    """Partial update of a project. Unset fields are left alone."""

    title: str | None = None
    description: str | None = None
    category: str | None = None
    budget: Decimal | None = None
    team_size: int | None = None
    team_roles: list[TeamRole] | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    skills_required: list[str] | None = None
    team_selection_type: TeamSelectionType | None = None
    priority: str | None = None
    project_type: str | None = None
    additional_notes: str | None = None


def estimated_duration_days(start: datetime, end: datetime) -> int:
    """Whole days between ``start`` and ``end``, rounded up."""
    seconds = (as_utc(end) - as_utc(start)).total_seconds()
    return math.ceil(seconds / SECONDS_PER_DAY)


def _require_text(value: str | None, field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field} is required")
    return value.strip()


def _validate_timeline(start: datetime, end: datetime) -> tuple[datetime, datetime]:
    start, end = as_utc(start), as_utc(end)
    if start >= end:
        raise ValidationError("End date must be after start date")
    return start, end


def _validate_roles(roles: list[dict[str, Any]]) -> None:
    for spec in roles:
        if not str(spec.get("role") or "").strip():
            raise ValidationError("Every team role needs a name")
        if int(spec.get("quantity") or 0) < 1:
            raise ValidationError(f"Role {spec['role']} needs a quantity of at least 1")


class ProjectService:
    """Project creation, edits, funding, status changes and read models."""

    def __init__(self, ctx: EngineContext, recruiter: AutoRecruiter) -> None:
        self.ctx = ctx
        self.recruiter = recruiter
        self._logger = logger.bind(component="ProjectService")

    async def create_project(self, actor: Actor, draft: ProjectDraft) -> Project:
        """Create a project and escrow its budget from the caller's balance.

        The project starts in ``not_started``; when its selection type is not
        manual the recruiter runs in the same transaction and may move it to
        ``team_selection``.

        Raises:
            UnauthorizedError: Caller is a freelancer.
            ValidationError: Missing fields, budget below the minimum, roles
                not adding up to the team size, or start not before end.
            InsufficientBalanceError: Caller cannot cover the budget.
        """
        if actor.role == ActorRole.FREELANCER:
            raise UnauthorizedError("Only clients and admins can create team projects")

        title = _require_text(draft.title, "title")
        description = _require_text(draft.description, "description")
        category = _require_text(draft.category, "category")
        budget = to_money(draft.budget, "budget")
        if budget < self.ctx.escrow.minimum_budget:
            raise ValidationError(
                f"Minimum budget is {self.ctx.escrow.minimum_budget}. Please enter a higher amount."
            )
        if draft.team_size < 1:
            raise ValidationError("team_size must be at least 1")
        roles = [r.model_dump() for r in draft.team_roles]
        if not roles:
            raise ValidationError("team_roles is required")
        _validate_roles(roles)
        total = sum(r["quantity"] for r in roles)
        if total != draft.team_size:
            raise ValidationError(
                f"Total team roles quantity ({total}) must match team size ({draft.team_size})"
            )
        start, end = _validate_timeline(draft.start_date, draft.end_date)

        outbox = Outbox()
        async with self.ctx.session_factory() as session:
            async with session.begin():
                await self.ctx.directory.adjust_balance(
                    session,
                    actor.user_id,
                    -budget,
                    f"Team project created: {title}",
                )
                project = Project(
                    client_id=actor.user_id,
                    title=title,
                    description=description,
                    category=category,
                    budget=budget,
                    skills_required=list(draft.skills_required),
                    team_size=draft.team_size,
                    team_roles=roles,
                    team_selection_type=draft.team_selection_type,
                    status=ProjectStatus.not_started,
                    priority=draft.priority,
                    project_type=draft.project_type,
                    start_date=start,
                    end_date=end,
                    estimated_duration_days=estimated_duration_days(start, end),
                    additional_notes=draft.additional_notes,
                    members=[],
                )
                await project_queries.insert_project(session, project)
                outbox.add(
                    actor.user_id,
                    NotificationEvent.PROJECT_CREATED,
                    project_id=project.id,
                    title=title,
                    budget=str(budget),
                )

                if project.team_selection_type != TeamSelectionType.manual:
                    uow = ProjectUnitOfWork(session=session, project=project, outbox=outbox)
                    await self.recruiter.recruit_in(uow)

        await outbox.flush(self.ctx.notifier)

        self._logger.info(
            "project_created",
            project_id=str(project.id),
            client_id=str(actor.user_id),
            budget=str(budget),
            status=project.status.value,
        )
        return project

    async def get_project(self, project_id: uuid.UUID) -> Project:
        """Load a project with its members, tasks and payouts.

        Raises:
            NotFoundError: If the project does not exist.
        """
        async with self.ctx.session_factory() as session:
            project = await project_queries.get_project(session, project_id)
        if project is None:
            raise NotFoundError("project", project_id)
        return project

    async def list_projects(
        self,
        client_id: uuid.UUID | None = None,
        status: ProjectStatus | None = None,
    ) -> list[Project]:
        async with self.ctx.session_factory() as session:
            return await project_queries.list_projects(session, client_id, status)

    async def update_project(
        self,
        actor: Actor,
        project_id: uuid.UUID,
        patch: ProjectPatch,
    ) -> Project:
        """Edit a project that has not been closed or paused.

        Raises:
            UnauthorizedError: Caller is not the client or an admin.
            InvalidTransitionError: Project is on hold, completed or cancelled.
            ValidationError: Invalid fields, a budget below the minimum, or a
                team shape that does not fit the current members.
            InsufficientBalanceError: Client cannot cover a budget increase.
            InsufficientBudgetError: A decrease would cut into committed money.
        """
        fields = patch.model_fields_set

        async with project_transaction(self.ctx, project_id) as uow:
            project = uow.project
            require_owner_or_admin(project, actor, "update this project")
            if project.status not in EDITABLE_PROJECT_STATUSES:
                raise InvalidTransitionError(
                    "project", project.status.value, "edited", project.id
                )

            for name in ("title", "description", "category"):
                if name in fields:
                    setattr(project, name, _require_text(getattr(patch, name), name))

            if "team_size" in fields or "team_roles" in fields:
                self._reshape_team(project, patch)

            if "skills_required" in fields:
                project.skills_required = list(patch.skills_required or [])

            if "start_date" in fields or "end_date" in fields:
                start, end = _validate_timeline(
                    patch.start_date or project.start_date,
                    patch.end_date or project.end_date,
                )
                project.start_date = start
                project.end_date = end
                project.estimated_duration_days = estimated_duration_days(start, end)

            if "team_selection_type" in fields and patch.team_selection_type is not None:
                project.team_selection_type = patch.team_selection_type
            for name in ("priority", "project_type"):
                if name in fields and getattr(patch, name):
                    setattr(project, name, getattr(patch, name))
            if "additional_notes" in fields:
                project.additional_notes = patch.additional_notes

            if "budget" in fields and patch.budget is not None:
                await self._change_budget(uow, to_money(patch.budget, "budget"))

            await uow.session.flush()
            uow.outbox.add(
                project.client_id,
                NotificationEvent.PROJECT_UPDATED,
                project_id=project.id,
                fields=sorted(fields),
            )
            self._logger.info(
                "project_updated",
                project_id=str(project.id),
                fields_updated=sorted(fields),
            )

            if project.team_selection_type != TeamSelectionType.manual:
                await self.recruiter.recruit_in(uow)

        return project

    async def add_funds(self, actor: Actor, project_id: uuid.UUID, amount: Any) -> Project:
        """Top up a project's budget from the caller's balance, without tax.

        Raises:
            ValidationError: Amount missing or not positive.
            UnauthorizedError: Caller is not the client or an admin.
            InvalidTransitionError: Project is completed or cancelled.
            InsufficientBalanceError: Caller cannot cover the amount.
        """
        top_up = to_money(amount, allow_zero=False)

        async with project_transaction(self.ctx, project_id) as uow:
            project = uow.project
            require_owner_or_admin(project, actor, "add funds to this project")
            if project.status in TERMINAL_PROJECT_STATUSES:
                raise InvalidTransitionError(
                    "project", project.status.value, "funded", project.id
                )

            await self.ctx.directory.adjust_balance(
                uow.session,
                actor.user_id,
                -top_up,
                f"Add funds to team project: {project.title}",
                project_id=project.id,
            )
            project.budget = project.budget + top_up
            await uow.session.flush()

            self._logger.info(
                "funds_added",
                project_id=str(project.id),
                payer_id=str(actor.user_id),
                amount=str(top_up),
                budget=str(project.budget),
            )
            uow.outbox.add(
                actor.user_id,
                NotificationEvent.FUNDS_ADDED,
                project_id=project.id,
                amount=str(top_up),
                budget=str(project.budget),
            )

        return project

    async def delete_project(self, actor: Actor, project_id: uuid.UUID) -> None:
        """Delete a project that has not started, returning its budget untaxed.

        Raises:
            UnauthorizedError: Caller is not the client or an admin.
            InvalidTransitionError: Project is past ``not_started``.
            ValidationError: Money is still reserved by tasks or payouts.
        """
        async with project_transaction(self.ctx, project_id) as uow:
            project = uow.project
            require_owner_or_admin(project, actor, "delete this project")
            if project.status != ProjectStatus.not_started:
                raise InvalidTransitionError(
                    "project", project.status.value, "deleted", project.id
                )
            if committed(project) > ZERO:
                raise ValidationError("Cannot delete a project with reserved tasks or payouts")

            if project.budget > ZERO:
                await issue_refund(
                    uow.session,
                    self.ctx.directory,
                    uow.outbox,
                    recipient_id=project.client_id,
                    gross=project.budget,
                    tax_rate=Decimal("0"),
                    reason=f"Deleted team project refund: {project.title}",
                    project_id=project.id,
                )
            await project_queries.delete_project(uow.session, project)

    async def update_status(
        self,
        actor: Actor,
        project_id: uuid.UUID,
        target: ProjectStatus,
    ) -> Project:
        """Move a project to ``target``.

        Asking for the current status changes nothing. Pausing or completing
        requires every task to be approved or cancelled. The first move to
        ``completed`` or ``cancelled`` refunds the uncommitted remainder to
        the client net of the processing tax.

        Raises:
            UnauthorizedError: Caller is not the client or an admin.
            AlreadyFinalError: Project is already completed or cancelled.
            IncompleteTasksError: Open tasks block pausing or completion.
        """
        async with project_transaction(self.ctx, project_id) as uow:
            project = uow.project
            require_owner_or_admin(project, actor, "change the project status")
            previous = project.status
            if previous == target:
                self._logger.debug("project_status_unchanged", status=target.value)
                return project

            ensure_project_transition(previous, target, project.id)
            if target in QUIESCENT_PROJECT_STATUSES:
                open_ids = open_task_ids(project)
                if open_ids:
                    raise IncompleteTasksError(open_ids)

            if target in TERMINAL_PROJECT_STATUSES:
                leftover = remaining(project)
                if leftover > ZERO:
                    await issue_refund(
                        uow.session,
                        self.ctx.directory,
                        uow.outbox,
                        recipient_id=project.client_id,
                        gross=leftover,
                        tax_rate=self.ctx.escrow.refund_tax_rate,
                        reason=f"Remaining budget refund for {target.value} team project: "
                        f"{project.title}",
                        project_id=project.id,
                    )
                if target == ProjectStatus.completed:
                    project.completed_at = utcnow()

            project.status = target
            await uow.session.flush()

            self._logger.info(
                "project_status_changed",
                project_id=str(project.id),
                from_status=previous.value,
                to_status=target.value,
            )
            uow.outbox.add(
                project.client_id,
                NotificationEvent.PROJECT_STATUS_CHANGED,
                project_id=project.id,
                from_status=previous,
                to_status=target,
            )

        return project

    async def launch_project(self, actor: Actor, project_id: uuid.UUID) -> Project:
        """Start work once every invited freelancer has answered.

        Raises:
            UnauthorizedError: Caller is not the client or an admin.
            InvalidTransitionError: Project is not in a pre-work status.
            ValidationError: Invitations are pending or nobody accepted.
        """
        async with project_transaction(self.ctx, project_id) as uow:
            project = uow.project
            require_owner_or_admin(project, actor, "launch this project")
            if project.status not in LAUNCHABLE_PROJECT_STATUSES:
                raise InvalidTransitionError(
                    "project",
                    project.status.value,
                    ProjectStatus.work_started.value,
                    project.id,
                )
            waiting = [m for m in project.members if m.status == MemberStatus.checking]
            if waiting:
                raise ValidationError(
                    f"Waiting for {len(waiting)} invitation(s) to be answered before launch"
                )
            accepted = [m for m in project.members if m.status == MemberStatus.accepted]
            if not accepted:
                raise ValidationError("At least one freelancer must accept before launch")

            previous = project.status
            project.status = ProjectStatus.work_started
            project.launched_at = utcnow()
            await uow.session.flush()

            self._logger.info(
                "project_launched",
                project_id=str(project.id),
                from_status=previous.value,
                team=len(accepted),
            )
            for recipient in [m.freelancer_id for m in accepted] + [project.client_id]:
                uow.outbox.add(
                    recipient,
                    NotificationEvent.PROJECT_LAUNCHED,
                    project_id=project.id,
                    project_title=project.title,
                )

        return project

    async def budget_summary(self, project_id: uuid.UUID) -> BudgetSummary:
        """Budget, committed and remaining amounts plus per-member earnings."""
        project = await self.get_project(project_id)
        return summarize(project)

    def _reshape_team(self, project: Project, patch: ProjectPatch) -> None:
        """Apply a team size / roles edit.

        A larger team size pads the last role (or a default role) with the
        difference. Roles adding up to more than the team size are rejected,
        as is any shape with fewer seats than active members.
        """
        if patch.team_roles is not None:
            roles = [r.model_dump() for r in patch.team_roles]
        else:
            roles = [dict(r) for r in project.team_roles or []]
        team_size = patch.team_size if patch.team_size is not None else project.team_size
        if team_size < 1:
            raise ValidationError("team_size must be at least 1")
        _validate_roles(roles)

        total = sum(int(r["quantity"]) for r in roles)
        if team_size > total:
            diff = team_size - total
            if roles:
                roles[-1]["quantity"] = int(roles[-1]["quantity"]) + diff
            else:
                roles.append({"role": DEFAULT_ROLE, "quantity": diff, "skills": []})
        elif total > team_size:
            raise ValidationError(
                f"Total team roles quantity ({total}) exceeds new team size ({team_size}). "
                "Please reduce role quantities first."
            )

        active = [m for m in project.members if m.is_active]
        if len(active) > team_size:
            raise ValidationError(
                f"Team size {team_size} is smaller than the {len(active)} active members"
            )
        seats = {r["role"]: int(r["quantity"]) for r in roles}
        for role in {m.role for m in active}:
            filled = sum(1 for m in active if m.role == role)
            if filled > seats.get(role, 0):
                raise ValidationError(
                    f"Role {role} has {filled} active members but only {seats.get(role, 0)} seats"
                )

        project.team_roles = roles
        project.team_size = team_size

    async def _change_budget(self, uow: ProjectUnitOfWork, new_budget: Decimal) -> None:
        project = uow.project
        old_budget = project.budget
        if new_budget < self.ctx.escrow.minimum_budget:
            raise ValidationError(f"Minimum budget is {self.ctx.escrow.minimum_budget}")

        if new_budget > old_budget:
            difference = new_budget - old_budget
            await self.ctx.directory.adjust_balance(
                uow.session,
                project.client_id,
                -difference,
                f"Budget increase for team project: {project.title}",
                project_id=project.id,
            )
        elif new_budget < old_budget:
            difference = old_budget - new_budget
            if new_budget < committed(project):
                raise InsufficientBudgetError(project.id, remaining(project), difference)
            await issue_refund(
                uow.session,
                self.ctx.directory,
                uow.outbox,
                recipient_id=project.client_id,
                gross=difference,
                tax_rate=self.ctx.escrow.refund_tax_rate,
                reason=f"Budget decrease refund for team project: {project.title}",
                project_id=project.id,
            )
        else:
            return

        project.budget = new_budget
        self._logger.info(
            "budget_changed",
            project_id=str(project.id),
            old_budget=str(old_budget),
            new_budget=str(new_budget),
        )
