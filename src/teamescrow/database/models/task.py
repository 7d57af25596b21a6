"""Task model for Teamescrow.

A task is a unit of paid work assigned to a team member. Its amount is
fixed at creation and reserved against the project budget until the task
is cancelled.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from teamescrow.database.models.base import Base, MoneyColumn, TimestampMixin


class TaskStatus(enum.Enum):
    """State machine for task lifecycle.

    States:
        pending: Assigned, not started.
        in_progress: Assignee is working on it.
        submitted: Assignee handed the work in.
        revision: Client asked for changes.
        approved: Accepted by the client. Terminal, amount stays spent.
        cancelled: Withdrawn. Terminal, amount refunded to the payer.
    """

    pending = "pending"
    in_progress = "in_progress"
    submitted = "submitted"
    revision = "revision"
    approved = "approved"
    cancelled = "cancelled"


class Task(TimestampMixin, Base):
    """A unit of paid work for one team member.

    Attributes:
        project_id: Parent project (denormalized for direct lookups).
        member_id: Team member the task belongs to.
        title: Short task title.
        description: What needs doing.
        amount: Money reserved for the task. May be zero.
        payer_id: Client whose escrow funded the task. Null for unfunded tasks.
        due_date: Optional deadline.
        optional_link: Optional reference link.
        status: Current state in the task lifecycle.
        cancellation_reason: Set when cancelled.
        cancellation_category: Set when cancelled.
        rating: Client rating (1-5), set when approved.
        review: Client review, set when approved.
        completed_at: When the task reached a terminal state.
    """

    __tablename__ = "project_tasks"

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
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(
        MoneyColumn,
        default=Decimal("0"),
        nullable=False,
    )
    payer_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    due_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    optional_link: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[TaskStatus] = mapped_column(
        Enum(TaskStatus, name="task_status"),
        default=TaskStatus.pending,
        nullable=False,
    )
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancellation_category: Mapped[str | None] = mapped_column(Text, nullable=True)
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    review: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
