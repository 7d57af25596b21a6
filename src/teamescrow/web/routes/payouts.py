"""Payout endpoints for Teamescrow.

Fixed payouts are created locked by the client and released automatically
after the escrow delay, or earlier by a manual status change. Members
request withdrawals against their approved earnings.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from teamescrow.database.models.payout import PayoutStatus
from teamescrow.engine.actors import Actor
from teamescrow.engine.service import EscrowEngine
from teamescrow.logging import get_logger
from teamescrow.web.deps import get_actor, get_escrow
from teamescrow.web.schemas import PayoutResponse

logger = get_logger(__name__)


class PayoutCreate(BaseModel):
    """Request schema for a fixed payout to a member."""

    freelancer_id: UUID
    amount: Decimal
    description: str | None = None


class WithdrawalCreate(BaseModel):
    """Request schema for a member's withdrawal request."""

    amount: Decimal
    payment_method: str = Field(..., min_length=1)
    payment_details: str | None = None


class PayoutStatusUpdate(BaseModel):
    """Request schema for releasing or cancelling a locked payout."""

    status: str


def create_payouts_router() -> APIRouter:
    """Create the payouts router.

    Routes:
        POST /projects/{id}/payouts - Create a locked fixed payout
        POST /projects/{id}/payouts/withdrawals - Request a withdrawal
        PUT /projects/{id}/payouts/{payout_id}/status - Release or cancel
    """
    router = APIRouter(prefix="/projects/{project_id}/payouts", tags=["payouts"])

    @router.post("/", response_model=PayoutResponse, status_code=201)
    async def create_payout_endpoint(
        project_id: UUID,
        payout_data: PayoutCreate,
        actor: Actor = Depends(get_actor),  # noqa: B008
        escrow: EscrowEngine = Depends(get_escrow),  # noqa: B008
    ) -> PayoutResponse:
        payout = await escrow.payouts.create_payout(
            actor,
            project_id,
            payout_data.freelancer_id,
            payout_data.amount,
            description=payout_data.description,
        )
        logger.info("payout_created_via_api", payout_id=str(payout.id))
        return PayoutResponse.model_validate(payout)

    @router.post("/withdrawals", response_model=PayoutResponse, status_code=201)
    async def request_withdrawal_endpoint(
        project_id: UUID,
        withdrawal: WithdrawalCreate,
        actor: Actor = Depends(get_actor),  # noqa: B008
        escrow: EscrowEngine = Depends(get_escrow),  # noqa: B008
    ) -> PayoutResponse:
        payout = await escrow.payouts.request_withdrawal(
            actor,
            project_id,
            withdrawal.amount,
            withdrawal.payment_method,
            payment_details=withdrawal.payment_details,
        )
        return PayoutResponse.model_validate(payout)

    @router.put("/{payout_id}/status", response_model=PayoutResponse)
    async def update_payout_status_endpoint(
        project_id: UUID,
        payout_id: UUID,
        status_update: PayoutStatusUpdate,
        actor: Actor = Depends(get_actor),  # noqa: B008
        escrow: EscrowEngine = Depends(get_escrow),  # noqa: B008
    ) -> PayoutResponse:
        try:
            target = PayoutStatus[status_update.status]
        except KeyError:
            logger.warning("invalid_status_update", status=status_update.status)
            raise HTTPException(status_code=400, detail=f"Invalid status: {status_update.status}")

        payout = await escrow.payouts.set_payout_status(actor, project_id, payout_id, target)
        return PayoutResponse.model_validate(payout)

    return router
