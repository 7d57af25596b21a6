"""TeamMember model for Teamescrow.

A team member attaches a freelancer to a project for one role. Tasks and
payout records hang off the member, mirroring who the money is earmarked
for.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Enum, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from teamescrow.database.models.base import Base, TimestampMixin, utcnow

if TYPE_CHECKING:
    from teamescrow.database.models.payout import PayoutRecord
    from teamescrow.database.models.task import Task


class MemberStatus(enum.Enum):
    """Invitation state of a team member.

    States:
        checking: Invited, waiting for the freelancer's answer.
        accepted: Freelancer joined the team.
        not_accepted: Declined, or expired unanswered.
    """

    checking = "checking"
    accepted = "accepted"
    not_accepted = "not_accepted"


class SelectedBy(enum.Enum):
    """Who put the freelancer on the team."""

    client = "client"
    admin = "admin"
    auto = "auto"


class TeamMember(TimestampMixin, Base):
    """A freelancer attached to a project for a specific role.

    Attributes:
        project_id: Parent project.
        freelancer_id: Invited freelancer.
        role: Team role name.
        status: Invitation state.
        selected_at: When the invitation was sent. Drives expiry.
        selected_by: Client, admin or auto-recruiter.
        responded_at: When the freelancer answered.
        tasks: Tasks assigned to this member.
        payouts: Payout records for this member.
    """

    __tablename__ = "team_members"
    __table_args__ = (
        UniqueConstraint("project_id", "freelancer_id", name="uq_team_member_freelancer"),
    )

    project_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    freelancer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    role: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[MemberStatus] = mapped_column(
        Enum(MemberStatus, name="member_status"),
        default=MemberStatus.checking,
        nullable=False,
    )
    selected_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    selected_by: Mapped[SelectedBy] = mapped_column(
        Enum(SelectedBy, name="selected_by"),
        default=SelectedBy.client,
        nullable=False,
    )
    responded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    tasks: Mapped[list["Task"]] = relationship(
        "Task",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="Task.created_at",
    )
    payouts: Mapped[list["PayoutRecord"]] = relationship(
        "PayoutRecord",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="PayoutRecord.created_at",
    )

    @property
    def is_active(self) -> bool:
        """Checking and accepted members occupy a seat in their role."""
        return self.status in (MemberStatus.checking, MemberStatus.accepted)
