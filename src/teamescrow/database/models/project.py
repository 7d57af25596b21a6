"""Project model for Teamescrow.

Defines the Project table and its enums. A project is a client-owned
request for a team of freelancers; its budget is debited from the client
on creation and reserved piecewise by tasks and payout records.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from teamescrow.database.models.base import Base, JSONDocument, MoneyColumn, TimestampMixin

if TYPE_CHECKING:
    from teamescrow.database.models.member import TeamMember


class ProjectStatus(enum.Enum):
    """Lifecycle status for a project.

    States:
        not_started: Created, nobody invited yet. Only state allowing deletion.
        started: Client marked the project started before team selection.
        team_selection: Invitations are out.
        work_started: Team launched.
        on_hold: Work paused. Requires every task to be terminal.
        completed: Finished. Uncommitted budget refunded. Terminal.
        cancelled: Abandoned. Uncommitted budget refunded. Terminal.
    """

    not_started = "not_started"
    started = "started"
    team_selection = "team_selection"
    work_started = "work_started"
    on_hold = "on_hold"
    completed = "completed"
    cancelled = "cancelled"


class TeamSelectionType(enum.Enum):
    """How team members are chosen. Auto and mixed enable the auto-recruiter."""

    manual = "manual"
    auto = "auto"
    mixed = "mixed"


class Project(TimestampMixin, Base):
    """A client-owned team project with an escrowed budget.

    Attributes:
        id: UUID primary key (from TimestampMixin).
        client_id: Owner who funded the budget.
        title: Short project title.
        description: Detailed description.
        category: Marketplace category.
        budget: Total money held for the project.
        skills_required: Project-wide skills, merged into every role's skills.
        team_size: Total number of members wanted.
        team_roles: List of {role, quantity, skills, experience_level}.
        team_selection_type: Manual, auto or mixed.
        status: Current lifecycle status.
        priority: low, medium, high or urgent.
        project_type: one-time, ongoing or hourly.
        start_date: Planned start.
        end_date: Planned end.
        estimated_duration_days: Whole days between start and end.
        additional_notes: Free text from the client.
        launched_at: When work started.
        completed_at: When the project was completed.
        members: Team members with their tasks and payout records.
    """

    __tablename__ = "projects"

    client_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    budget: Mapped[Decimal] = mapped_column(MoneyColumn, nullable=False)
    skills_required: Mapped[list[str]] = mapped_column(
        JSONDocument,
        default=list,
        nullable=False,
    )
    team_size: Mapped[int] = mapped_column(Integer, nullable=False)
    team_roles: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONDocument,
        default=list,
        nullable=False,
    )
    team_selection_type: Mapped[TeamSelectionType] = mapped_column(
        Enum(TeamSelectionType, name="team_selection_type"),
        default=TeamSelectionType.mixed,
        nullable=False,
    )
    status: Mapped[ProjectStatus] = mapped_column(
        Enum(ProjectStatus, name="project_status"),
        default=ProjectStatus.not_started,
        nullable=False,
    )
    priority: Mapped[str] = mapped_column(Text, default="medium", nullable=False)
    project_type: Mapped[str] = mapped_column(Text, default="one-time", nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    estimated_duration_days: Mapped[int] = mapped_column(Integer, nullable=False)
    additional_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    launched_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    members: Mapped[list["TeamMember"]] = relationship(
        "TeamMember",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="TeamMember.selected_at",
    )

    def find_member(self, freelancer_id: uuid.UUID) -> "TeamMember | None":
        """Return the member entry for a freelancer, if any."""
        for member in self.members:
            if member.freelancer_id == freelancer_id:
                return member
        return None
