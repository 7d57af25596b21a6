"""Budget accounting for Teamescrow projects.

All functions here are pure: they read an already-loaded project graph
(project -> members -> tasks / payouts) and never touch the database. The
services call them while holding the project's lock, so a check and the
write it guards commit together.

Committed amount:
    sum(task.amount for non-cancelled tasks)
    + sum(payout.amount for non-cancelled payouts of either type)

A withdrawal is drawn against approved task amounts that are already
counted, so it reserves that money a second time until the task side is
cancelled or the project closes.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from pydantic import BaseModel

from teamescrow.database.models.member import TeamMember
from teamescrow.database.models.payout import PayoutStatus
from teamescrow.database.models.project import Project
from teamescrow.database.models.task import TaskStatus
from teamescrow.engine.money import ZERO
from teamescrow.errors import InsufficientBudgetError

OPEN_TASK_STATUSES = frozenset(
    {
        TaskStatus.pending,
        TaskStatus.in_progress,
        TaskStatus.submitted,
        TaskStatus.revision,
    }
)


def committed_tasks(project: Project) -> Decimal:
    """Sum of amounts reserved by non-cancelled tasks."""
    return sum(
        (
            task.amount
            for member in project.members
            for task in member.tasks
            if task.status != TaskStatus.cancelled
        ),
        ZERO,
    )


def committed_payouts(project: Project) -> Decimal:
    """Sum of amounts reserved by non-cancelled payouts, withdrawals included."""
    return sum(
        (
            payout.amount
            for member in project.members
            for payout in member.payouts
            if payout.status != PayoutStatus.cancelled
        ),
        ZERO,
    )


def committed(project: Project) -> Decimal:
    """Total amount of the budget already earmarked."""
    return committed_tasks(project) + committed_payouts(project)


def remaining(project: Project) -> Decimal:
    """Budget not yet earmarked by tasks or payouts."""
    return project.budget - committed(project)


def can_reserve(project: Project, amount: Decimal) -> bool:
    """Whether ``amount`` more can be earmarked without exceeding the budget."""
    return committed(project) + amount <= project.budget


def ensure_can_reserve(project: Project, amount: Decimal) -> None:
    """Raise InsufficientBudgetError unless ``amount`` fits in the budget."""
    if not can_reserve(project, amount):
        raise InsufficientBudgetError(project.id, remaining(project), amount)


def open_task_ids(project: Project) -> list[uuid.UUID]:
    """IDs of tasks that have not reached a terminal state."""
    return [
        task.id
        for member in project.members
        for task in member.tasks
        if task.status in OPEN_TASK_STATUSES
    ]


def has_incomplete_tasks(project: Project) -> bool:
    return bool(open_task_ids(project))


def member_approved_earnings(member: TeamMember) -> Decimal:
    """Sum of approved task amounts for a member."""
    return sum(
        (task.amount for task in member.tasks if task.status == TaskStatus.approved),
        ZERO,
    )


def member_paid_out(member: TeamMember) -> Decimal:
    """Sum of non-cancelled payouts of any type for a member."""
    return sum(
        (p.amount for p in member.payouts if p.status != PayoutStatus.cancelled),
        ZERO,
    )


def member_available_earnings(member: TeamMember) -> Decimal:
    """Approved earnings not yet claimed by a payout."""
    return member_approved_earnings(member) - member_paid_out(member)


class MemberEarnings(BaseModel):
    """Earnings read model for one team member."""

    member_id: uuid.UUID
    freelancer_id: uuid.UUID
    role: str
    approved: Decimal
    paid_out: Decimal
    available: Decimal


class BudgetSummary(BaseModel):
    """Budget read model for a project.

    Attributes:
        project_id: Project the summary describes.
        budget: Total money held for the project.
        committed_tasks: Amount reserved by non-cancelled tasks.
        committed_payouts: Amount reserved by non-cancelled payouts of either type.
        committed: Total reserved amount.
        remaining: Budget minus committed amount.
        members: Per-member earnings.
    """

    project_id: uuid.UUID
    budget: Decimal
    committed_tasks: Decimal
    committed_payouts: Decimal
    committed: Decimal
    remaining: Decimal
    members: list[MemberEarnings]


def member_earnings(member: TeamMember) -> MemberEarnings:
    approved = member_approved_earnings(member)
    paid_out = member_paid_out(member)
    return MemberEarnings(
        member_id=member.id,
        freelancer_id=member.freelancer_id,
        role=member.role,
        approved=approved,
        paid_out=paid_out,
        available=approved - paid_out,
    )


def summarize(project: Project) -> BudgetSummary:
    """Build the budget read model for a loaded project."""
    tasks = committed_tasks(project)
    payouts = committed_payouts(project)
    return BudgetSummary(
        project_id=project.id,
        budget=project.budget,
        committed_tasks=tasks,
        committed_payouts=payouts,
        committed=tasks + payouts,
        remaining=project.budget - tasks - payouts,
        members=[member_earnings(m) for m in project.members],
    )
