"""User Directory collaborator.

The engine reads profiles and moves balances only through the UserDirectory
protocol. Every method takes the caller's session so a balance movement
commits, or rolls back, together with the escrow state change that caused
it. SqlUserDirectory is the implementation backed by the ``users`` and
``balance_logs`` tables.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any, Protocol

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from teamescrow.database.models.user import (
    AccountStatus,
    Availability,
    UserAccount,
    UserType,
)
from teamescrow.database.queries import users as user_queries


class UserProfile(BaseModel):
    """Snapshot of the profile data the engine decides on.

    Attributes:
        user_id: Account identifier.
        display_name: Name used in notifications.
        email: Contact address.
        user_type: Client, freelancer or admin.
        account_status: Moderation status.
        skills: Skill names as stored.
        rating: Running mean of task ratings.
        completed_projects: Number of approved tasks.
        availability: Presence status.
    """

    user_id: uuid.UUID
    display_name: str
    email: str | None = None
    user_type: UserType
    account_status: AccountStatus
    skills: list[str] = Field(default_factory=list)
    rating: float = 0.0
    completed_projects: int = 0
    availability: Availability = Availability.offline


def normalize_skills(raw: list[Any] | None) -> list[str]:
    """Flatten stored skills into names.

    Skills may be stored as plain strings or as objects with a ``name`` key.
    """
    names: list[str] = []
    for skill in raw or []:
        if isinstance(skill, dict):
            skill = skill.get("name")
        if isinstance(skill, str) and skill.strip():
            names.append(skill.strip())
    return names


def profile_from_account(user: UserAccount) -> UserProfile:
    return UserProfile(
        user_id=user.id,
        display_name=user.display_name,
        email=user.email,
        user_type=user.user_type,
        account_status=user.account_status,
        skills=normalize_skills(user.skills),
        rating=user.rating or 0.0,
        completed_projects=user.completed_projects or 0,
        availability=user.availability,
    )


class UserDirectory(Protocol):
    """Balances and profiles of marketplace users."""

    async def get_balance(self, session: AsyncSession, user_id: uuid.UUID) -> Decimal: ...

    async def adjust_balance(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        delta: Decimal,
        reason: str,
        project_id: uuid.UUID | None = None,
    ) -> Decimal: ...

    async def get_profile(
        self, session: AsyncSession, user_id: uuid.UUID
    ) -> UserProfile | None: ...

    async def find_candidates(
        self, session: AsyncSession, exclude_ids: set[uuid.UUID]
    ) -> list[UserProfile]: ...

    async def record_task_rating(
        self, session: AsyncSession, user_id: uuid.UUID, rating: int
    ) -> None: ...


class SqlUserDirectory:
    """UserDirectory backed by the engine's own database."""

    async def get_balance(self, session: AsyncSession, user_id: uuid.UUID) -> Decimal:
        return await user_queries.get_balance(session, user_id)

    async def adjust_balance(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        delta: Decimal,
        reason: str,
        project_id: uuid.UUID | None = None,
    ) -> Decimal:
        """Apply a signed balance movement.

        Raises:
            InsufficientBalanceError: If a debit exceeds the balance.
            NotFoundError: If the user does not exist.
        """
        return await user_queries.adjust_balance(
            session, user_id, delta, reason, project_id=project_id
        )

    async def get_profile(
        self, session: AsyncSession, user_id: uuid.UUID
    ) -> UserProfile | None:
        user = await user_queries.get_user(session, user_id)
        if user is None:
            return None
        return profile_from_account(user)

    async def find_candidates(
        self, session: AsyncSession, exclude_ids: set[uuid.UUID]
    ) -> list[UserProfile]:
        """Active freelancers not in ``exclude_ids``, read fresh from the database."""
        users = await user_queries.find_active_freelancers(session, exclude_ids)
        return [profile_from_account(u) for u in users]

    async def record_task_rating(
        self, session: AsyncSession, user_id: uuid.UUID, rating: int
    ) -> None:
        await user_queries.record_task_rating(session, user_id, rating)
