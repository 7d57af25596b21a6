"""Auto-recruiter for Teamescrow.

Fills open team roles by inviting the best-scoring freelancers. Scoring is
a pure function of persisted profile data, read fresh from the User
Directory on every run:

    score = 100 * matched skills
          + 80 if rating >= 4.5, else 40 if rating >= 4
          + 10 * completed projects
          + 30 if online

A candidate who shares no skill with the role (role skills plus the
project's required skills, compared case-insensitively) is never invited,
whatever the rest of the score.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from typing import Any

import structlog
from pydantic import BaseModel, Field

from teamescrow.database.models.base import utcnow
from teamescrow.database.models.member import MemberStatus, SelectedBy, TeamMember
from teamescrow.database.models.project import ProjectStatus, TeamSelectionType
from teamescrow.database.models.user import Availability
from teamescrow.engine.actors import Actor, require_owner_or_admin
from teamescrow.engine.context import EngineContext, ProjectUnitOfWork, project_transaction
from teamescrow.integrations.directory import UserProfile, normalize_skills
from teamescrow.integrations.notifications import NotificationEvent

logger = structlog.get_logger(__name__)

# Projects past team formation are left alone
SKIPPED_STATUSES = frozenset(
    {ProjectStatus.work_started, ProjectStatus.completed, ProjectStatus.cancelled}
)


class CandidateScore(BaseModel):
    """A candidate's score for one role."""

    user_id: uuid.UUID
    score: int
    matched_skills: list[str] = Field(default_factory=list)


class Invitation(BaseModel):
    """An invitation sent by the recruiter."""

    freelancer_id: uuid.UUID
    role: str
    score: int


class RecruitmentResult(BaseModel):
    """Outcome of one recruiter run on a project.

    Attributes:
        project_id: Project recruited for.
        invited: Invitations sent, in the order they were sent.
        status: Project status after the run.
        skipped_reason: Why the run did nothing, if it was skipped.
    """

    project_id: uuid.UUID
    invited: list[Invitation] = Field(default_factory=list)
    status: ProjectStatus
    skipped_reason: str | None = None


def lowered(skills: Iterable[Any]) -> set[str]:
    return {s.lower() for s in normalize_skills(list(skills))}


def score_candidate(profile: UserProfile, wanted: set[str]) -> CandidateScore:
    """Score a candidate against a role's wanted skills (lowercase)."""
    matched = sorted(lowered(profile.skills) & wanted)
    score = 100 * len(matched)
    if profile.rating >= 4.5:
        score += 80
    elif profile.rating >= 4:
        score += 40
    score += 10 * (profile.completed_projects or 0)
    if profile.availability == Availability.online:
        score += 30
    return CandidateScore(user_id=profile.user_id, score=score, matched_skills=matched)


def rank_candidates(
    candidates: Iterable[UserProfile],
    wanted: set[str],
) -> list[CandidateScore]:
    """Score candidates with at least one matching skill, best first."""
    scored = [score_candidate(c, wanted) for c in candidates]
    eligible = [s for s in scored if s.matched_skills]
    return sorted(eligible, key=lambda s: s.score, reverse=True)


class AutoRecruiter:
    """Invites freelancers into a project's open roles."""

    def __init__(self, ctx: EngineContext) -> None:
        self.ctx = ctx
        self._logger = logger.bind(component="AutoRecruiter")

    async def recruit(self, project_id: uuid.UUID, actor: Actor | None = None) -> RecruitmentResult:
        """Run the recruiter on a project under its lock.

        When ``actor`` is given the run is an explicit request: the caller
        must be the client or an admin, and the project's selection type is
        not consulted. Without an actor the run is automatic and manual
        projects are skipped.
        """
        async with project_transaction(self.ctx, project_id) as uow:
            if actor is not None:
                require_owner_or_admin(uow.project, actor, "trigger auto-hire")
            return await self.recruit_in(uow, explicit=actor is not None)

    async def recruit_in(
        self,
        uow: ProjectUnitOfWork,
        explicit: bool = False,
    ) -> RecruitmentResult:
        """Run the recruiter inside an already open project transaction."""
        project = uow.project

        if not explicit and project.team_selection_type == TeamSelectionType.manual:
            return RecruitmentResult(
                project_id=project.id, status=project.status, skipped_reason="manual_selection"
            )
        if project.status in SKIPPED_STATUSES:
            return RecruitmentResult(
                project_id=project.id, status=project.status, skipped_reason=project.status.value
            )

        excluded = {m.freelancer_id for m in project.members}
        excluded.add(project.client_id)
        candidates: list[UserProfile] | None = None
        invited: list[Invitation] = []
        project_skills = list(project.skills_required or [])

        for role_spec in project.team_roles or []:
            role = role_spec.get("role")
            quantity = int(role_spec.get("quantity") or 0)
            if not role:
                continue

            filled = sum(1 for m in project.members if m.role == role and m.is_active)
            needed = quantity - filled
            if needed <= 0:
                continue

            if candidates is None:
                candidates = await self.ctx.directory.find_candidates(uow.session, excluded)

            wanted = lowered(list(role_spec.get("skills") or []) + project_skills)
            pool = [c for c in candidates if c.user_id not in excluded]
            ranked = rank_candidates(pool, wanted)
            limit = min(needed, self.ctx.recruitment.max_invites_per_role)

            for pick in ranked[:limit]:
                project.members.append(
                    TeamMember(
                        project_id=project.id,
                        freelancer_id=pick.user_id,
                        role=role,
                        status=MemberStatus.checking,
                        selected_at=utcnow(),
                        selected_by=SelectedBy.auto,
                        tasks=[],
                        payouts=[],
                    )
                )
                excluded.add(pick.user_id)
                invited.append(Invitation(freelancer_id=pick.user_id, role=role, score=pick.score))
                uow.outbox.add(
                    pick.user_id,
                    NotificationEvent.TEAM_INVITATION,
                    project_id=project.id,
                    project_title=project.title,
                    role=role,
                    expires_in_hours=self.ctx.recruitment.invitation_expiry_hours,
                )

        if invited:
            if project.status == ProjectStatus.not_started:
                project.status = ProjectStatus.team_selection
            await uow.session.flush()
            self._logger.info(
                "auto_recruit_invited",
                project_id=str(project.id),
                invited=len(invited),
                status=project.status.value,
            )
        else:
            self._logger.debug("auto_recruit_no_candidates", project_id=str(project.id))

        return RecruitmentResult(project_id=project.id, invited=invited, status=project.status)
