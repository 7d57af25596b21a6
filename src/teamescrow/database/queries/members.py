"""TeamMember query functions for Teamescrow."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from teamescrow.database.models.member import MemberStatus, TeamMember


async def list_expired_invitations(
    session: AsyncSession,
    cutoff: datetime,
) -> list[tuple[UUID, UUID]]:
    """Find invitations still unanswered since before ``cutoff``.

    Args:
        session: Active async database session.
        cutoff: Invitations selected strictly before this instant are expired.

    Returns:
        List of (member_id, project_id) pairs, oldest invitation first.
    """
    stmt = (
        select(TeamMember.id, TeamMember.project_id)
        .where(
            TeamMember.status == MemberStatus.checking,
            TeamMember.selected_at < cutoff,
        )
        .order_by(TeamMember.selected_at.asc())
    )
    result = await session.execute(stmt)
    return [(row.id, row.project_id) for row in result.all()]

