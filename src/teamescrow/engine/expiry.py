"""Invitation expiry sweep for Teamescrow.

Invitations left unanswered for ``invitation_expiry_hours`` are flipped to
``not_accepted`` by a periodic job, then the auto-recruiter runs again on
each affected project that is still forming its team. Each project is
handled in its own transaction under its own lock, so one bad project does
not hold up the others.
"""

from __future__ import annotations

import asyncio
import uuid
from collections import defaultdict
from datetime import datetime, timedelta, timezone

import structlog
from pydantic import BaseModel, Field

from teamescrow.database.models.base import as_utc, utcnow
from teamescrow.database.models.member import MemberStatus
from teamescrow.database.models.project import ProjectStatus, TeamSelectionType
from teamescrow.database.queries.members import list_expired_invitations
from teamescrow.engine.context import EngineContext, ProjectUnitOfWork, project_transaction
from teamescrow.engine.recruiter import AutoRecruiter
from teamescrow.integrations.notifications import NotificationEvent

logger = structlog.get_logger(__name__)

RECRUITING_STATUSES = frozenset({ProjectStatus.not_started, ProjectStatus.team_selection})


class ExpiryResult(BaseModel):
    """Outcome of one expiry pass.

    Attributes:
        expired: Invitations flipped to not_accepted.
        projects: Projects that had at least one expired invitation.
        reinvited: New invitations sent by the recruiter.
        failed: Projects whose processing raised.
    """

    expired: int = Field(default=0)
    projects: int = Field(default=0)
    reinvited: int = Field(default=0)
    failed: int = Field(default=0)


class InvitationExpirySweeper:
    """Periodic job expiring stale invitations and re-running recruitment."""

    def __init__(
        self,
        ctx: EngineContext,
        recruiter: AutoRecruiter,
        interval: int | None = None,
        expiry_hours: int | None = None,
    ) -> None:
        """Initialize the expiry sweeper.

        Args:
            ctx: Shared engine context.
            recruiter: Recruiter used to refill expired seats.
            interval: Seconds between passes (default from config).
            expiry_hours: Hours an invitation may stay unanswered (default from config).
        """
        self.ctx = ctx
        self.recruiter = recruiter
        self.interval = (
            interval if interval is not None else ctx.recruitment.expiry_sweep_interval_seconds
        )
        self.expiry_hours = (
            expiry_hours if expiry_hours is not None else ctx.recruitment.invitation_expiry_hours
        )
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._logger = logger.bind(component="InvitationExpirySweeper")

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the periodic expiry loop. No-op if already running."""
        if self._running:
            self._logger.warning("expiry_sweeper_already_running")
            return

        self._running = True
        self._task = asyncio.create_task(self._sweep_loop())
        self._logger.info(
            "expiry_sweeper_started",
            interval=self.interval,
            expiry_hours=self.expiry_hours,
        )

    async def stop(self) -> None:
        """Stop the periodic expiry loop."""
        if not self._running:
            self._logger.warning("expiry_sweeper_not_running")
            return

        self._running = False

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        self._logger.info("expiry_sweeper_stopped")

    async def expire(self, now: datetime | None = None) -> ExpiryResult:
        """Expire every invitation older than the expiry window.

        Args:
            now: Reference time (defaults to the current UTC time).

        Returns:
            ExpiryResult with counts for the pass.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(hours=self.expiry_hours)

        async with self.ctx.session_factory() as session:
            stale = await list_expired_invitations(session, cutoff)

        by_project: dict[uuid.UUID, set[uuid.UUID]] = defaultdict(set)
        for member_id, project_id in stale:
            by_project[project_id].add(member_id)

        result = ExpiryResult(projects=len(by_project))
        for project_id, member_ids in by_project.items():
            try:
                async with project_transaction(self.ctx, project_id) as uow:
                    expired, reinvited = await self._expire_project(uow, member_ids, cutoff)
                result.expired += expired
                result.reinvited += reinvited
            except Exception as e:
                result.failed += 1
                self._logger.error(
                    "invitation_expiry_failed",
                    project_id=str(project_id),
                    error=str(e),
                    exc_info=True,
                )

        if result.projects:
            self._logger.info("invitation_expiry_completed", **result.model_dump())
        return result

    async def _expire_project(
        self,
        uow: ProjectUnitOfWork,
        member_ids: set[uuid.UUID],
        cutoff: datetime,
    ) -> tuple[int, int]:
        project = uow.project
        expired = 0
        for member in project.members:
            # Re-checked under the lock; the freelancer may have answered meanwhile
            if member.id not in member_ids or member.status != MemberStatus.checking:
                continue
            if as_utc(member.selected_at) >= cutoff:
                continue
            member.status = MemberStatus.not_accepted
            member.responded_at = utcnow()
            expired += 1
            uow.outbox.add(
                member.freelancer_id,
                NotificationEvent.INVITATION_EXPIRED,
                project_id=project.id,
                project_title=project.title,
                role=member.role,
            )

        if not expired:
            return 0, 0

        await uow.session.flush()
        self._logger.info("invitations_expired", project_id=str(project.id), count=expired)

        if (
            project.team_selection_type == TeamSelectionType.manual
            or project.status not in RECRUITING_STATUSES
        ):
            return expired, 0

        recruited = await self.recruiter.recruit_in(uow)
        return expired, len(recruited.invited)

    async def _sweep_loop(self) -> None:
        """Background loop running ``expire`` every ``interval`` seconds."""
        self._logger.info("expiry_sweep_loop_started")

        while self._running:
            try:
                await self.expire()
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                self._logger.info("expiry_sweep_loop_cancelled")
                break
            except Exception as e:
                self._logger.error(
                    "expiry_sweep_loop_error",
                    error=str(e),
                    exc_info=True,
                )
                # Continue sweeping despite errors
                await asyncio.sleep(self.interval)
