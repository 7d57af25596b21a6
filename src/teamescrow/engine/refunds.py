"""Refund helper shared by budget edits, task cancellation and project closing."""

from __future__ import annotations

import uuid
from decimal import Decimal

import structlog
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from teamescrow.engine.money import apply_tax
from teamescrow.integrations.directory import UserDirectory
from teamescrow.integrations.notifications import NotificationEvent, Outbox

logger = structlog.get_logger(__name__)


class RefundReceipt(BaseModel):
    """Result of a refund.

    Attributes:
        recipient_id: User credited.
        gross: Amount refunded before tax.
        tax: Processing tax withheld.
        net: Amount credited.
        balance_after: Recipient's balance after the credit.
        reason: Audit reason.
    """

    recipient_id: uuid.UUID
    gross: Decimal
    tax: Decimal
    net: Decimal
    balance_after: Decimal
    reason: str


async def issue_refund(
    session: AsyncSession,
    directory: UserDirectory,
    outbox: Outbox,
    recipient_id: uuid.UUID,
    gross: Decimal,
    tax_rate: Decimal,
    reason: str,
    project_id: uuid.UUID | None = None,
) -> RefundReceipt:
    """Credit ``gross`` minus ``tax_rate`` to a user and notify them.

    Callers guarantee this runs once per logical event by invoking it only
    from the state transition that frees the money.

    Args:
        session: Session of the transaction performing the transition.
        directory: User Directory holding the recipient's balance.
        outbox: Outbox for the refund notification.
        recipient_id: User to credit.
        gross: Amount freed.
        tax_rate: Processing tax rate (0 for plain reversals).
        reason: Audit reason stored with the balance log entry.
        project_id: Project the money came from.

    Returns:
        RefundReceipt describing the credit.
    """
    breakdown = apply_tax(gross, tax_rate)
    balance_after = await directory.adjust_balance(
        session, recipient_id, breakdown.net, reason, project_id=project_id
    )

    logger.info(
        "refund_issued",
        recipient_id=str(recipient_id),
        gross=str(breakdown.gross),
        tax=str(breakdown.tax),
        net=str(breakdown.net),
        reason=reason,
    )
    outbox.add(
        recipient_id,
        NotificationEvent.REFUND_ISSUED,
        project_id=project_id,
        gross=str(breakdown.gross),
        tax=str(breakdown.tax),
        net=str(breakdown.net),
        reason=reason,
    )

    return RefundReceipt(
        recipient_id=recipient_id,
        gross=breakdown.gross,
        tax=breakdown.tax,
        net=breakdown.net,
        balance_after=balance_after,
        reason=reason,
    )
