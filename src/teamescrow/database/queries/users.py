"""User Directory query functions for Teamescrow.

Balance movements are applied with a single conditional UPDATE so that
concurrent projects touching the same user never lose an increment and a
debit can never drive a balance negative. Every movement writes a
BalanceLogEntry audit row.

These functions never open a transaction themselves; the caller owns it.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from teamescrow.database.models.user import (
    AccountStatus,
    Availability,
    BalanceLogEntry,
    UserAccount,
    UserType,
)
from teamescrow.errors import InsufficientBalanceError, NotFoundError

logger = structlog.get_logger(__name__)


async def create_user(
    session: AsyncSession,
    display_name: str,
    user_type: UserType = UserType.client,
    email: str | None = None,
    balance: Decimal = Decimal("0"),
    skills: list[Any] | None = None,
    rating: float = 0.0,
    completed_projects: int = 0,
    availability: Availability = Availability.offline,
    account_status: AccountStatus = AccountStatus.active,
) -> UserAccount:
    """Create a user account.

    Args:
        session: Active async database session.
        display_name: Name shown in notifications.
        user_type: Client, freelancer or admin.
        email: Contact address.
        balance: Opening balance.
        skills: Freelancer skills.
        rating: Starting rating.
        completed_projects: Starting completed-project count.
        availability: Presence status.
        account_status: Moderation status.

    Returns:
        The newly created UserAccount instance.
    """
    user = UserAccount(
        display_name=display_name,
        user_type=user_type,
        email=email,
        balance=balance,
        skills=skills or [],
        rating=rating,
        completed_projects=completed_projects,
        availability=availability,
        account_status=account_status,
    )
    session.add(user)
    await session.flush()

    logger.info(
        "user_created",
        user_id=str(user.id),
        user_type=user_type.value,
    )
    return user


async def get_user(session: AsyncSession, user_id: UUID) -> UserAccount | None:
    """Retrieve a user account by ID.

    Args:
        session: Active async database session.
        user_id: UUID of the user.

    Returns:
        The UserAccount if found, None otherwise.
    """
    stmt = select(UserAccount).where(UserAccount.id == user_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_balance(session: AsyncSession, user_id: UUID) -> Decimal:
    """Read a user's current balance straight from the database.

    Raises:
        NotFoundError: If the user does not exist.
    """
    stmt = select(UserAccount.balance).where(UserAccount.id == user_id)
    result = await session.execute(stmt)
    balance = result.scalar_one_or_none()
    if balance is None:
        raise NotFoundError("user", user_id)
    return balance


async def adjust_balance(
    session: AsyncSession,
    user_id: UUID,
    delta: Decimal,
    reason: str,
    project_id: UUID | None = None,
) -> Decimal:
    """Atomically add ``delta`` (which may be negative) to a user's balance.

    Args:
        session: Active async database session.
        user_id: UUID of the user.
        delta: Signed amount to apply.
        reason: Audit reason stored with the log entry.
        project_id: Project that caused the movement, if any.

    Returns:
        The balance after the movement.

    Raises:
        NotFoundError: If the user does not exist.
        InsufficientBalanceError: If the movement would make the balance negative.
    """
    stmt = (
        update(UserAccount)
        .where(UserAccount.id == user_id)
        .where(UserAccount.balance + delta >= 0)
        .values(balance=UserAccount.balance + delta)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)

    if result.rowcount == 0:
        current = await get_balance(session, user_id)
        logger.warning(
            "balance_adjust_rejected",
            user_id=str(user_id),
            delta=str(delta),
            balance=str(current),
        )
        raise InsufficientBalanceError(user_id, current, -delta)

    new_balance = await get_balance(session, user_id)
    session.add(
        BalanceLogEntry(
            user_id=user_id,
            amount=delta,
            balance_after=new_balance,
            reason=reason,
            project_id=project_id,
        )
    )
    await session.flush()

    logger.info(
        "balance_adjusted",
        user_id=str(user_id),
        delta=str(delta),
        balance_after=str(new_balance),
        reason=reason,
    )
    return new_balance


async def list_balance_logs(
    session: AsyncSession,
    user_id: UUID,
    project_id: UUID | None = None,
) -> list[BalanceLogEntry]:
    """List a user's balance movements, oldest first.

    Args:
        session: Active async database session.
        user_id: UUID of the user.
        project_id: Optional project filter.

    Returns:
        List of BalanceLogEntry instances.
    """
    stmt = select(BalanceLogEntry).where(BalanceLogEntry.user_id == user_id)
    if project_id is not None:
        stmt = stmt.where(BalanceLogEntry.project_id == project_id)
    stmt = stmt.order_by(BalanceLogEntry.created_at.asc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def find_active_freelancers(
    session: AsyncSession,
    exclude_ids: set[UUID] | None = None,
) -> list[UserAccount]:
    """List active freelancer accounts, skipping the given IDs.

    Skill matching is done by the caller since skills are stored as a JSON
    document.
    """
    stmt = select(UserAccount).where(
        UserAccount.user_type == UserType.freelancer,
        UserAccount.account_status == AccountStatus.active,
    )
    if exclude_ids:
        stmt = stmt.where(UserAccount.id.not_in(exclude_ids))
    stmt = stmt.execution_options(populate_existing=True)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def record_task_rating(
    session: AsyncSession,
    user_id: UUID,
    task_rating: int,
) -> UserAccount:
    """Fold an approved task's rating into a freelancer's running mean.

    Increments ``completed_projects`` to ``n`` and sets
    ``rating = (rating * (n - 1) + task_rating) / n``. An unrated freelancer
    simply takes the task rating.

    Raises:
        NotFoundError: If the user does not exist.
    """
    stmt = (
        select(UserAccount)
        .where(UserAccount.id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("user", user_id)

    user.completed_projects += 1
    n = user.completed_projects
    if not user.rating:
        user.rating = float(task_rating)
    else:
        user.rating = (user.rating * (n - 1) + task_rating) / n
    await session.flush()

    logger.info(
        "freelancer_rating_updated",
        user_id=str(user_id),
        rating=user.rating,
        completed_projects=n,
    )
    return user
