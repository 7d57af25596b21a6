"""SQLAlchemy ORM models for Teamescrow.

This module defines the database schema: user directory accounts and their
balance audit log, projects, team members, tasks and payout records.

All models use SQLAlchemy 2.0 declarative style with Mapped[] type annotations.
"""

from teamescrow.database.models.base import Base, TimestampMixin, as_utc, utcnow
from teamescrow.database.models.member import MemberStatus, SelectedBy, TeamMember
from teamescrow.database.models.payout import PayoutRecord, PayoutStatus, PayoutType
from teamescrow.database.models.project import Project, ProjectStatus, TeamSelectionType
from teamescrow.database.models.task import Task, TaskStatus
from teamescrow.database.models.user import (
    AccountStatus,
    Availability,
    BalanceLogEntry,
    UserAccount,
    UserType,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "as_utc",
    "utcnow",
    "UserAccount",
    "UserType",
    "AccountStatus",
    "Availability",
    "BalanceLogEntry",
    "Project",
    "ProjectStatus",
    "TeamSelectionType",
    "TeamMember",
    "MemberStatus",
    "SelectedBy",
    "Task",
    "TaskStatus",
    "PayoutRecord",
    "PayoutStatus",
    "PayoutType",
]
