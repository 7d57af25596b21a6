"""State machines for tasks, payouts and projects.

Each machine is an authoritative transition table plus a validator that
raises the right error. Acting on an entity that already reached a terminal
state raises AlreadyFinalError, so callers can tell a repeat action apart
from a malformed one.
"""

from __future__ import annotations

from typing import Any

from teamescrow.database.models.payout import PayoutStatus
from teamescrow.database.models.project import ProjectStatus
from teamescrow.database.models.task import TaskStatus
from teamescrow.errors import AlreadyFinalError, InvalidTransitionError

# Authoritative task state machine
TASK_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.pending: {TaskStatus.in_progress, TaskStatus.cancelled},
    TaskStatus.in_progress: {TaskStatus.submitted, TaskStatus.cancelled},
    TaskStatus.submitted: {TaskStatus.approved, TaskStatus.revision, TaskStatus.cancelled},
    TaskStatus.revision: {TaskStatus.submitted, TaskStatus.cancelled},
    TaskStatus.approved: set(),  # Terminal
    TaskStatus.cancelled: set(),  # Terminal
}

# Moves only the assignee may make
ASSIGNEE_TARGETS = frozenset({TaskStatus.in_progress, TaskStatus.submitted})

PAYOUT_TRANSITIONS: dict[PayoutStatus, set[PayoutStatus]] = {
    PayoutStatus.locked: {PayoutStatus.released, PayoutStatus.cancelled},
    PayoutStatus.released: set(),
    PayoutStatus.cancelled: set(),
}

TERMINAL_PROJECT_STATUSES = frozenset({ProjectStatus.completed, ProjectStatus.cancelled})

# Statuses in which a project's details and budget may be edited
EDITABLE_PROJECT_STATUSES = frozenset(
    {
        ProjectStatus.not_started,
        ProjectStatus.started,
        ProjectStatus.team_selection,
        ProjectStatus.work_started,
    }
)

# Statuses that require every task to be approved or cancelled
QUIESCENT_PROJECT_STATUSES = frozenset({ProjectStatus.on_hold, ProjectStatus.completed})

LAUNCHABLE_PROJECT_STATUSES = frozenset(
    {ProjectStatus.not_started, ProjectStatus.started, ProjectStatus.team_selection}
)


def validate_task_transition(current: TaskStatus, target: TaskStatus) -> bool:
    """Return True if the task transition is in TASK_TRANSITIONS."""
    return target in TASK_TRANSITIONS.get(current, set())


def ensure_task_transition(
    current: TaskStatus,
    target: TaskStatus,
    task_id: Any | None = None,
) -> None:
    """Raise unless a task may move from ``current`` to ``target``.

    Raises:
        AlreadyFinalError: If the task is approved or cancelled.
        InvalidTransitionError: If the move is not in the table.
    """
    if not TASK_TRANSITIONS.get(current):
        raise AlreadyFinalError("task", current.value, target.value, task_id)
    if not validate_task_transition(current, target):
        raise InvalidTransitionError("task", current.value, target.value, task_id)


def ensure_payout_transition(
    current: PayoutStatus,
    target: PayoutStatus,
    payout_id: Any | None = None,
) -> None:
    """Raise unless a payout may move from ``current`` to ``target``.

    Raises:
        AlreadyFinalError: If the payout is released or cancelled.
        InvalidTransitionError: If the move is not in the table.
    """
    if not PAYOUT_TRANSITIONS.get(current):
        raise AlreadyFinalError("payout", current.value, target.value, payout_id)
    if target not in PAYOUT_TRANSITIONS[current]:
        raise InvalidTransitionError("payout", current.value, target.value, payout_id)


def ensure_project_transition(
    current: ProjectStatus,
    target: ProjectStatus,
    project_id: Any | None = None,
) -> None:
    """Raise unless a project may move from ``current`` to ``target``.

    Any non-terminal project may move to any other status. Completed and
    cancelled projects are archived and accept no further moves; asking a
    terminal project for the status it already has is handled by the caller
    as a no-op before reaching here.

    Raises:
        AlreadyFinalError: If the project is completed or cancelled.
    """
    if current in TERMINAL_PROJECT_STATUSES:
        raise AlreadyFinalError("project", current.value, target.value, project_id)
