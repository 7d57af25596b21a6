"""EscrowEngine: wires the services and owns the background jobs."""

from __future__ import annotations

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from teamescrow.config import TeamescrowConfig
from teamescrow.engine.context import EngineContext
from teamescrow.engine.expiry import InvitationExpirySweeper
from teamescrow.engine.members import MembershipService
from teamescrow.engine.payouts import PayoutService
from teamescrow.engine.projects import ProjectService
from teamescrow.engine.recruiter import AutoRecruiter
from teamescrow.engine.scheduler import EscrowScheduler
from teamescrow.engine.tasks import TaskService
from teamescrow.integrations.directory import SqlUserDirectory, UserDirectory
from teamescrow.integrations.notifications import Notifier, build_notifier

logger = structlog.get_logger(__name__)


class EscrowEngine:
    """Entry point to every engine operation.

    Attributes:
        ctx: Shared collaborators and settings.
        recruiter: Auto-recruiter.
        projects: Project lifecycle.
        members: Team membership.
        tasks: Task subsystem.
        payouts: Payout and escrow subsystem.
        scheduler: Release timers and release sweep.
        expiry: Invitation expiry sweep.
    """

    def __init__(self, ctx: EngineContext) -> None:
        self.ctx = ctx
        self.recruiter = AutoRecruiter(ctx)
        self.projects = ProjectService(ctx, self.recruiter)
        self.members = MembershipService(ctx, self.recruiter)
        self.tasks = TaskService(ctx)
        self.payouts = PayoutService(ctx)
        self.scheduler = EscrowScheduler(ctx, self.payouts)
        self.payouts.attach_scheduler(self.scheduler)
        self.expiry = InvitationExpirySweeper(ctx, self.recruiter)

    @classmethod
    def build(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        config: TeamescrowConfig,
        directory: UserDirectory | None = None,
        notifier: Notifier | None = None,
    ) -> EscrowEngine:
        """Create an engine from configuration.

        Args:
            session_factory: Session factory bound to the engine database.
            config: Root configuration.
            directory: User Directory (defaults to SqlUserDirectory).
            notifier: Notifier (defaults to webhook or logging per config).
        """
        ctx = EngineContext(
            session_factory=session_factory,
            directory=directory or SqlUserDirectory(),
            notifier=notifier or build_notifier(config.notifications),
            escrow=config.escrow,
            recruitment=config.recruitment,
        )
        return cls(ctx)

    async def start(self) -> None:
        """Start the release sweep and the invitation expiry sweep."""
        await self.scheduler.start()
        await self.expiry.start()
        logger.info("escrow_engine_started")

    async def stop(self) -> None:
        """Stop the background jobs and close the notifier if it holds a client."""
        if self.scheduler.running:
            await self.scheduler.stop()
        if self.expiry.running:
            await self.expiry.stop()
        close = getattr(self.ctx.notifier, "close", None)
        if close is not None:
            await close()
        logger.info("escrow_engine_stopped")
