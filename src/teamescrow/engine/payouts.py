"""Payout and escrow subsystem for Teamescrow.

A payout record is created ``locked`` and later either released, crediting
the freelancer exactly once, or cancelled. Releases come from three places:
a manual status change, the in-process release timer and the durable
release sweep. The timer and the sweep both go through ``release_if_locked``,
which re-reads the record under the project lock and does nothing unless it
is still locked.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

import structlog

from teamescrow.database.models.base import utcnow
from teamescrow.database.models.member import MemberStatus, TeamMember
from teamescrow.database.models.payout import PayoutRecord, PayoutStatus, PayoutType
from teamescrow.database.models.project import Project
from teamescrow.database.queries.payouts import get_payout_project_id
from teamescrow.engine.actors import Actor, require_owner_or_admin
from teamescrow.engine.budget import ensure_can_reserve, member_available_earnings
from teamescrow.engine.context import EngineContext, ProjectUnitOfWork, project_transaction
from teamescrow.engine.graph import get_member, get_payout
from teamescrow.engine.money import to_money
from teamescrow.engine.refunds import issue_refund
from teamescrow.engine.state_machine import TERMINAL_PROJECT_STATUSES, ensure_payout_transition
from teamescrow.errors import (
    InsufficientBalanceError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from teamescrow.integrations.notifications import NotificationEvent

if TYPE_CHECKING:
    from teamescrow.engine.scheduler import EscrowScheduler

logger = structlog.get_logger(__name__)

DEFAULT_MILESTONE_DESCRIPTION = "Project Milestone"


class PayoutService:
    """Creates payout records and moves them out of escrow."""

    def __init__(self, ctx: EngineContext) -> None:
        self.ctx = ctx
        self.scheduler: EscrowScheduler | None = None
        self._logger = logger.bind(component="PayoutService")

    def attach_scheduler(self, scheduler: EscrowScheduler) -> None:
        """Schedule an in-process release for every payout created from now on."""
        self.scheduler = scheduler

    async def create_payout(
        self,
        actor: Actor,
        project_id: uuid.UUID,
        freelancer_id: uuid.UUID,
        amount: Any,
        description: str | None = None,
    ) -> PayoutRecord:
        """Grant a fixed milestone payout to an accepted team member.

        Raises:
            ValidationError: Amount missing or not positive.
            UnauthorizedError: Caller is not the client or an admin.
            NotFoundError: Project or member missing.
            InvalidTransitionError: Project closed or member not accepted.
            InsufficientBudgetError: Amount exceeds the remaining budget.
        """
        payout_amount = to_money(amount, allow_zero=False)

        async with project_transaction(self.ctx, project_id) as uow:
            project = uow.project
            require_owner_or_admin(project, actor, "create payouts")
            self._ensure_open(project)
            member = self._accepted_member(project, freelancer_id)

            ensure_can_reserve(project, payout_amount)

            payout = await self._add_locked(
                uow,
                member,
                amount=payout_amount,
                description=description or DEFAULT_MILESTONE_DESCRIPTION,
                payout_type=PayoutType.fixed,
            )

        self._schedule(payout)
        return payout

    async def request_withdrawal(
        self,
        actor: Actor,
        project_id: uuid.UUID,
        amount: Any,
        payment_method: str,
        payment_details: str | None = None,
    ) -> PayoutRecord:
        """Let a team member withdraw approved-task earnings.

        The amount may not exceed approved task amounts minus the member's
        non-cancelled payouts.

        Raises:
            ValidationError: Amount or payment method missing.
            NotFoundError: Project missing or caller not a member.
            InsufficientBalanceError: Amount exceeds available earnings.
        """
        withdrawal = to_money(amount, allow_zero=False)
        if not payment_method or not payment_method.strip():
            raise ValidationError("payment_method is required")

        async with project_transaction(self.ctx, project_id) as uow:
            member = get_member(uow.project, actor.user_id)
            available = member_available_earnings(member)
            if withdrawal > available:
                raise InsufficientBalanceError(actor.user_id, available, withdrawal)

            payout = await self._add_locked(
                uow,
                member,
                amount=withdrawal,
                description=f"Withdrawal Request ({payment_method.strip()})",
                payout_type=PayoutType.withdrawal,
                payment_method=payment_method.strip(),
                payment_details=payment_details,
            )

        self._schedule(payout)
        return payout

    async def set_payout_status(
        self,
        actor: Actor,
        project_id: uuid.UUID,
        payout_id: uuid.UUID,
        target: PayoutStatus,
    ) -> PayoutRecord:
        """Manually release or cancel a locked payout.

        Raises:
            UnauthorizedError: Caller is not the client or an admin.
            NotFoundError: Project or payout missing.
            AlreadyFinalError: Payout already released or cancelled.
            InvalidTransitionError: Target is not released or cancelled.
        """
        async with project_transaction(self.ctx, project_id) as uow:
            project = uow.project
            require_owner_or_admin(project, actor, "change payout status")
            member, payout = get_payout(project, payout_id)
            ensure_payout_transition(payout.status, target, payout.id)

            if target == PayoutStatus.released:
                await self._release(uow, member, payout, trigger="manual")
            else:
                await self._cancel(uow, member, payout)

        return payout

    async def release_if_locked(self, payout_id: uuid.UUID, trigger: str = "sweep") -> bool:
        """Release a payout if, and only if, it is still locked.

        Safe to call any number of times from any number of places; only the
        first call that finds the record locked credits the freelancer.

        Args:
            payout_id: Payout to release.
            trigger: Who is asking ("timer", "sweep", ...), for the logs.

        Returns:
            True if this call released the payout.
        """
        async with self.ctx.session_factory() as session:
            project_id = await get_payout_project_id(session, payout_id)
        if project_id is None:
            self._logger.warning("payout_missing", payout_id=str(payout_id), trigger=trigger)
            return False

        try:
            async with project_transaction(self.ctx, project_id) as uow:
                member, payout = get_payout(uow.project, payout_id)
                if payout.status != PayoutStatus.locked:
                    self._logger.debug(
                        "payout_release_skipped",
                        payout_id=str(payout_id),
                        status=payout.status.value,
                        trigger=trigger,
                    )
                    return False
                await self._release(uow, member, payout, trigger=trigger)
        except NotFoundError as exc:
            # A missing freelancer account is a failed release, not a gone payout.
            if exc.entity not in ("project", "payout"):
                raise
            self._logger.warning("payout_missing", payout_id=str(payout_id), trigger=trigger)
            return False

        return True

    async def _add_locked(
        self,
        uow: ProjectUnitOfWork,
        member: TeamMember,
        amount: Any,
        description: str,
        payout_type: PayoutType,
        payment_method: str = "Wallet",
        payment_details: str | None = None,
    ) -> PayoutRecord:
        payout = PayoutRecord(
            project_id=uow.project.id,
            freelancer_id=member.freelancer_id,
            amount=amount,
            description=description,
            payout_type=payout_type,
            status=PayoutStatus.locked,
            payment_method=payment_method,
            payment_details=payment_details,
            created_at=utcnow(),
        )
        member.payouts.append(payout)
        await uow.session.flush()

        self._logger.info(
            "payout_created",
            payout_id=str(payout.id),
            freelancer_id=str(member.freelancer_id),
            amount=str(amount),
            payout_type=payout_type.value,
        )
        uow.outbox.add(
            member.freelancer_id,
            NotificationEvent.PAYOUT_CREATED,
            project_id=uow.project.id,
            payout_id=payout.id,
            amount=str(amount),
            payout_type=payout_type,
            release_delay_seconds=self.ctx.escrow.release_delay_seconds,
        )
        return payout

    async def _release(
        self,
        uow: ProjectUnitOfWork,
        member: TeamMember,
        payout: PayoutRecord,
        trigger: str,
    ) -> None:
        project = uow.project
        payout.status = PayoutStatus.released
        payout.released_at = utcnow()
        await self.ctx.directory.adjust_balance(
            uow.session,
            member.freelancer_id,
            payout.amount,
            f"Team project payout: {project.title} ({payout.description})",
            project_id=project.id,
        )
        await uow.session.flush()

        self._logger.info(
            "payout_released",
            payout_id=str(payout.id),
            freelancer_id=str(member.freelancer_id),
            amount=str(payout.amount),
            trigger=trigger,
        )
        uow.outbox.add(
            member.freelancer_id,
            NotificationEvent.PAYOUT_RELEASED,
            project_id=project.id,
            payout_id=payout.id,
            amount=str(payout.amount),
        )

    async def _cancel(
        self,
        uow: ProjectUnitOfWork,
        member: TeamMember,
        payout: PayoutRecord,
    ) -> None:
        project = uow.project
        payout.status = PayoutStatus.cancelled
        payout.cancelled_at = utcnow()

        # A closed project already refunded its uncommitted remainder, so a
        # freed milestone goes back to the client directly.
        if project.status in TERMINAL_PROJECT_STATUSES and payout.payout_type == PayoutType.fixed:
            project.budget = project.budget - payout.amount
            await issue_refund(
                uow.session,
                self.ctx.directory,
                uow.outbox,
                recipient_id=project.client_id,
                gross=payout.amount,
                tax_rate=self.ctx.escrow.refund_tax_rate,
                reason=f"Cancelled payout refund for closed team project: {project.title}",
                project_id=project.id,
            )
        await uow.session.flush()

        self._logger.info(
            "payout_cancelled",
            payout_id=str(payout.id),
            freelancer_id=str(member.freelancer_id),
            amount=str(payout.amount),
        )
        uow.outbox.add(
            member.freelancer_id,
            NotificationEvent.PAYOUT_CANCELLED,
            project_id=project.id,
            payout_id=payout.id,
            amount=str(payout.amount),
        )

    def _ensure_open(self, project: Project) -> None:
        if project.status in TERMINAL_PROJECT_STATUSES:
            raise InvalidTransitionError(
                "project", project.status.value, "payout_created", project.id
            )

    def _accepted_member(self, project: Project, freelancer_id: uuid.UUID) -> TeamMember:
        member = get_member(project, freelancer_id)
        if member.status != MemberStatus.accepted:
            raise InvalidTransitionError(
                "member", member.status.value, "payout_created", member.id
            )
        return member

    def _schedule(self, payout: PayoutRecord) -> None:
        if self.scheduler is not None:
            self.scheduler.schedule_release(payout.id, payout.created_at)
