"""PayoutRecord query functions for Teamescrow.

The release sweep scans payouts across all projects without taking any
project lock; each hit is then released under its own project's lock.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from teamescrow.database.models.payout import PayoutRecord, PayoutStatus


async def get_payout_project_id(session: AsyncSession, payout_id: UUID) -> UUID | None:
    """Return the project a payout belongs to, or None if it does not exist."""
    stmt = select(PayoutRecord.project_id).where(PayoutRecord.id == payout_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_due_payouts(
    session: AsyncSession,
    cutoff: datetime,
    limit: int | None = None,
) -> list[UUID]:
    """Find locked payouts created at or before ``cutoff``.

    Args:
        session: Active async database session.
        cutoff: Payouts created at or before this instant are due.
        limit: Optional cap on the number of IDs returned.

    Returns:
        Payout IDs, oldest first.
    """
    stmt = (
        select(PayoutRecord.id)
        .where(
            PayoutRecord.status == PayoutStatus.locked,
            PayoutRecord.created_at <= cutoff,
        )
        .order_by(PayoutRecord.created_at.asc())
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())
