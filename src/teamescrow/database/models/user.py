"""User Directory models for Teamescrow.

The engine treats the user directory as an external collaborator, but in
this deployment it lives in the same database so that balance movements
commit atomically with the escrow state transition that triggers them.

Defines the UserAccount table holding spendable balances and freelancer
profile data, and the BalanceLogEntry audit table.
"""

from __future__ import annotations

import enum
import uuid
from decimal import Decimal
from typing import Any

from sqlalchemy import CheckConstraint, Enum, Float, ForeignKey, Integer, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from teamescrow.database.models.base import Base, JSONDocument, MoneyColumn, TimestampMixin


class UserType(enum.Enum):
    """Kind of marketplace account."""

    client = "client"
    freelancer = "freelancer"
    admin = "admin"


class AccountStatus(enum.Enum):
    """Moderation status of an account. Only active freelancers are recruited."""

    active = "active"
    suspended = "suspended"
    banned = "banned"


class Availability(enum.Enum):
    """Freelancer presence as shown in the marketplace."""

    online = "online"
    offline = "offline"
    busy = "busy"
    on_vacation = "on_vacation"


class UserAccount(TimestampMixin, Base):
    """A marketplace user with a spendable balance.

    Attributes:
        id: UUID primary key (from TimestampMixin).
        display_name: Name shown in notifications.
        email: Contact address for notifications.
        user_type: Client, freelancer or admin.
        account_status: Moderation status.
        balance: Spendable balance. Never negative.
        skills: Freelancer skills, as plain strings.
        rating: Running mean of task ratings (0 when unrated).
        completed_projects: Number of approved tasks.
        availability: Presence status.
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_users_balance_non_negative"),
    )

    display_name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_type: Mapped[UserType] = mapped_column(
        Enum(UserType, name="user_type"),
        default=UserType.client,
        nullable=False,
    )
    account_status: Mapped[AccountStatus] = mapped_column(
        Enum(AccountStatus, name="account_status"),
        default=AccountStatus.active,
        nullable=False,
    )
    balance: Mapped[Decimal] = mapped_column(
        MoneyColumn,
        default=Decimal("0"),
        nullable=False,
    )
    skills: Mapped[list[Any]] = mapped_column(
        JSONDocument,
        default=list,
        nullable=False,
    )
    rating: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    completed_projects: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    availability: Mapped[Availability] = mapped_column(
        Enum(Availability, name="availability"),
        default=Availability.offline,
        nullable=False,
    )


class BalanceLogEntry(TimestampMixin, Base):
    """Audit record of a single balance movement.

    Attributes:
        user_id: Account whose balance moved.
        amount: Signed delta applied to the balance.
        balance_after: Balance right after the movement.
        reason: Human-readable reason.
        project_id: Project that caused the movement, if any.
    """

    __tablename__ = "balance_logs"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    project_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
