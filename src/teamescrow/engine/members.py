"""Team membership for Teamescrow.

Clients and admins invite freelancers into roles, freelancers answer their
invitations, and members with no money attached may be removed. A declined
invitation frees the seat and, for auto and mixed projects, sends the
recruiter after a replacement.
"""

from __future__ import annotations

import uuid

import structlog

from teamescrow.database.models.base import utcnow
from teamescrow.database.models.member import MemberStatus, SelectedBy, TeamMember
from teamescrow.database.models.payout import PayoutStatus
from teamescrow.database.models.project import ProjectStatus, TeamSelectionType
from teamescrow.database.models.task import TaskStatus
from teamescrow.database.models.user import UserType
from teamescrow.engine.actors import Actor, require_owner_or_admin
from teamescrow.engine.context import EngineContext, project_transaction
from teamescrow.engine.graph import get_member
from teamescrow.engine.recruiter import AutoRecruiter
from teamescrow.engine.state_machine import TERMINAL_PROJECT_STATUSES
from teamescrow.errors import (
    AlreadyFinalError,
    InvalidTransitionError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from teamescrow.integrations.notifications import NotificationEvent

logger = structlog.get_logger(__name__)

INVITING_STATUSES = frozenset({ProjectStatus.not_started, ProjectStatus.started})


class MembershipService:
    """Adds, removes and answers for team members."""

    def __init__(self, ctx: EngineContext, recruiter: AutoRecruiter) -> None:
        self.ctx = ctx
        self.recruiter = recruiter
        self._logger = logger.bind(component="MembershipService")

    async def add_member(
        self,
        actor: Actor,
        project_id: uuid.UUID,
        freelancer_id: uuid.UUID,
        role: str,
    ) -> TeamMember:
        """Invite a freelancer into one of the project's roles.

        Raises:
            UnauthorizedError: Caller is not the client or an admin.
            NotFoundError: Project or freelancer missing.
            InvalidTransitionError: Project is completed or cancelled.
            ValidationError: Unknown role, duplicate member, or no free seat.
        """
        async with project_transaction(self.ctx, project_id) as uow:
            project = uow.project
            require_owner_or_admin(project, actor, "add team members")
            if project.status in TERMINAL_PROJECT_STATUSES:
                raise InvalidTransitionError(
                    "project", project.status.value, "member_added", project.id
                )

            profile = await self.ctx.directory.get_profile(uow.session, freelancer_id)
            if profile is None or profile.user_type != UserType.freelancer:
                raise NotFoundError("freelancer", freelancer_id)
            if project.find_member(freelancer_id) is not None:
                raise ValidationError("Freelancer already added to this project")

            seats = {r.get("role"): int(r.get("quantity") or 0) for r in project.team_roles or []}
            if role not in seats:
                raise ValidationError(f"Role {role} is not part of this project")

            active = [m for m in project.members if m.is_active]
            if len(active) >= project.team_size:
                raise ValidationError(
                    f"Team size limit reached ({project.team_size} active/pending members)"
                )
            if sum(1 for m in active if m.role == role) >= seats[role]:
                raise ValidationError(f"All {seats[role]} seat(s) for {role} are taken")

            member = TeamMember(
                project_id=project.id,
                freelancer_id=freelancer_id,
                role=role,
                status=MemberStatus.checking,
                selected_at=utcnow(),
                selected_by=SelectedBy.admin if actor.is_admin else SelectedBy.client,
                tasks=[],
                payouts=[],
            )
            project.members.append(member)
            if project.status in INVITING_STATUSES:
                project.status = ProjectStatus.team_selection
            await uow.session.flush()

            self._logger.info(
                "member_added",
                project_id=str(project.id),
                freelancer_id=str(freelancer_id),
                role=role,
                selected_by=member.selected_by.value,
            )
            uow.outbox.add(
                freelancer_id,
                NotificationEvent.TEAM_INVITATION,
                project_id=project.id,
                project_title=project.title,
                role=role,
                expires_in_hours=self.ctx.recruitment.invitation_expiry_hours,
            )

        return member

    async def remove_member(
        self,
        actor: Actor,
        project_id: uuid.UUID,
        freelancer_id: uuid.UUID,
    ) -> None:
        """Remove a member who has no live tasks or payouts.

        Raises:
            UnauthorizedError: Caller is not the client or an admin.
            NotFoundError: Project or member missing.
            ValidationError: The member still has money attached.
        """
        async with project_transaction(self.ctx, project_id) as uow:
            project = uow.project
            require_owner_or_admin(project, actor, "remove team members")
            member = get_member(project, freelancer_id)

            live_tasks = [t for t in member.tasks if t.status != TaskStatus.cancelled]
            live_payouts = [p for p in member.payouts if p.status != PayoutStatus.cancelled]
            if live_tasks or live_payouts:
                raise ValidationError(
                    "Cannot remove a member with tasks or payouts that are not cancelled"
                )

            project.members.remove(member)
            await uow.session.flush()

            self._logger.info(
                "member_removed",
                project_id=str(project.id),
                freelancer_id=str(freelancer_id),
            )
            uow.outbox.add(
                freelancer_id,
                NotificationEvent.MEMBER_REMOVED,
                project_id=project.id,
                project_title=project.title,
            )

    async def respond_to_invitation(
        self,
        actor: Actor,
        project_id: uuid.UUID,
        accept: bool,
    ) -> TeamMember:
        """Record the invited freelancer's answer.

        Raises:
            UnauthorizedError: Caller was not invited to this project.
            AlreadyFinalError: The invitation was already answered or expired.
        """
        target = MemberStatus.accepted if accept else MemberStatus.not_accepted

        async with project_transaction(self.ctx, project_id) as uow:
            project = uow.project
            member = project.find_member(actor.user_id)
            if member is None:
                raise UnauthorizedError("You are not invited to this project")
            if member.status != MemberStatus.checking:
                raise AlreadyFinalError("invitation", member.status.value, target.value, member.id)

            member.status = target
            member.responded_at = utcnow()
            await uow.session.flush()

            self._logger.info(
                "invitation_answered",
                project_id=str(project.id),
                freelancer_id=str(actor.user_id),
                status=target.value,
            )

            if accept:
                uow.outbox.add(
                    actor.user_id,
                    NotificationEvent.INVITATION_ACCEPTED,
                    project_id=project.id,
                    project_title=project.title,
                    role=member.role,
                )
                accepted = sum(1 for m in project.members if m.status == MemberStatus.accepted)
                if accepted >= project.team_size:
                    uow.outbox.add(
                        project.client_id,
                        NotificationEvent.TEAM_READY,
                        project_id=project.id,
                        project_title=project.title,
                    )
            else:
                uow.outbox.add(
                    project.client_id,
                    NotificationEvent.INVITATION_DECLINED,
                    project_id=project.id,
                    freelancer_id=actor.user_id,
                    role=member.role,
                )
                if project.team_selection_type != TeamSelectionType.manual:
                    await self.recruiter.recruit_in(uow)

        return member
