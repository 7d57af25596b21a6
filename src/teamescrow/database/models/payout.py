"""PayoutRecord model for Teamescrow.

A payout record is escrowed money on its way to a freelancer. It is
created locked and later released (credited exactly once) or cancelled.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Text
from sqlalchemy.orm import Mapped, mapped_column

from teamescrow.database.models.base import Base, MoneyColumn, TimestampMixin


class PayoutType(enum.Enum):
    """Origin of a payout.

    Types:
        fixed: Milestone granted by the client or an admin.
        withdrawal: Freelancer withdrawing approved-task earnings.
    """

    fixed = "fixed"
    withdrawal = "withdrawal"


class PayoutStatus(enum.Enum):
    """Escrow state of a payout. Released and cancelled are terminal."""

    locked = "locked"
    released = "released"
    cancelled = "cancelled"


class PayoutRecord(TimestampMixin, Base):
    """An escrowed monetary release to a freelancer.

    Attributes:
        project_id: Parent project (denormalized for the release sweep).
        member_id: Team member the payout belongs to.
        freelancer_id: Recipient (denormalized for the release sweep).
        amount: Money to credit on release.
        description: Milestone or withdrawal description.
        payout_type: Fixed or withdrawal.
        status: Locked, released or cancelled.
        payment_method: Withdrawal method ("Wallet" for fixed payouts).
        payment_details: Withdrawal destination details.
        released_at: When the freelancer was credited.
        cancelled_at: When the payout was cancelled.
        created_at: Creation time. Drives the automatic release (from TimestampMixin).
    """

    __tablename__ = "payout_records"
    __table_args__ = (
        Index("ix_payout_records_status_created_at", "status", "created_at"),
    )

    project_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    member_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("team_members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    freelancer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    payout_type: Mapped[PayoutType] = mapped_column(
        Enum(PayoutType, name="payout_type"),
        default=PayoutType.fixed,
        nullable=False,
    )
    status: Mapped[PayoutStatus] = mapped_column(
        Enum(PayoutStatus, name="payout_status"),
        default=PayoutStatus.locked,
        nullable=False,
    )
    payment_method: Mapped[str] = mapped_column(Text, default="Wallet", nullable=False)
    payment_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    released_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
