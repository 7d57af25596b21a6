"""Unit tests for the task, payout and project state machines."""

from __future__ import annotations

import pytest

from teamescrow.database.models import PayoutStatus, ProjectStatus, TaskStatus
from teamescrow.engine.state_machine import (
    ASSIGNEE_TARGETS,
    TASK_TRANSITIONS,
    ensure_payout_transition,
    ensure_project_transition,
    ensure_task_transition,
    validate_task_transition,
)
from teamescrow.errors import AlreadyFinalError, InvalidTransitionError


class TestTaskTransitions:
    """Test the task state machine."""

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (TaskStatus.pending, TaskStatus.in_progress),
            (TaskStatus.in_progress, TaskStatus.submitted),
            (TaskStatus.submitted, TaskStatus.approved),
            (TaskStatus.submitted, TaskStatus.revision),
            (TaskStatus.revision, TaskStatus.submitted),
            (TaskStatus.pending, TaskStatus.cancelled),
            (TaskStatus.revision, TaskStatus.cancelled),
        ],
    )
    def test_valid_transitions(self, current: TaskStatus, target: TaskStatus) -> None:
        """Test that every move in the table is accepted."""
        assert validate_task_transition(current, target)
        ensure_task_transition(current, target)

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (TaskStatus.pending, TaskStatus.approved),
            (TaskStatus.pending, TaskStatus.submitted),
            (TaskStatus.in_progress, TaskStatus.revision),
            (TaskStatus.revision, TaskStatus.approved),
            (TaskStatus.submitted, TaskStatus.in_progress),
        ],
    )
    def test_invalid_transitions(self, current: TaskStatus, target: TaskStatus) -> None:
        """Test that moves outside the table raise InvalidTransitionError."""
        assert not validate_task_transition(current, target)
        with pytest.raises(InvalidTransitionError) as exc_info:
            ensure_task_transition(current, target)
        assert not isinstance(exc_info.value, AlreadyFinalError)

    @pytest.mark.parametrize("terminal", [TaskStatus.approved, TaskStatus.cancelled])
    def test_terminal_states_are_final(self, terminal: TaskStatus) -> None:
        """Test that acting on a finished task raises AlreadyFinalError."""
        assert TASK_TRANSITIONS[terminal] == set()
        with pytest.raises(AlreadyFinalError, match="already"):
            ensure_task_transition(terminal, TaskStatus.cancelled, task_id="T-1")

    def test_every_status_has_an_entry(self) -> None:
        """Test that the table covers every task status."""
        assert set(TASK_TRANSITIONS) == set(TaskStatus)

    def test_assignee_targets(self) -> None:
        """Test that only work moves belong to the assignee."""
        assert ASSIGNEE_TARGETS == {TaskStatus.in_progress, TaskStatus.submitted}


class TestPayoutTransitions:
    """Test the payout state machine."""

    def test_locked_can_settle(self) -> None:
        """Test that a locked payout may be released or cancelled."""
        ensure_payout_transition(PayoutStatus.locked, PayoutStatus.released)
        ensure_payout_transition(PayoutStatus.locked, PayoutStatus.cancelled)

    def test_locked_to_locked_is_invalid(self) -> None:
        """Test that a payout cannot be re-locked."""
        with pytest.raises(InvalidTransitionError):
            ensure_payout_transition(PayoutStatus.locked, PayoutStatus.locked)

    @pytest.mark.parametrize("terminal", [PayoutStatus.released, PayoutStatus.cancelled])
    def test_settled_payout_is_final(self, terminal: PayoutStatus) -> None:
        """Test that a settled payout cannot move again."""
        with pytest.raises(AlreadyFinalError) as exc_info:
            ensure_payout_transition(terminal, PayoutStatus.released)
        assert exc_info.value.code == "ALREADY_FINAL"
        assert exc_info.value.message == f"Payout is already {terminal.value}"


class TestProjectTransitions:
    """Test the project status rules."""

    @pytest.mark.parametrize(
        "current",
        [
            ProjectStatus.not_started,
            ProjectStatus.team_selection,
            ProjectStatus.work_started,
            ProjectStatus.on_hold,
        ],
    )
    def test_open_project_may_move_anywhere(self, current: ProjectStatus) -> None:
        """Test that any non-terminal project may change status."""
        for target in ProjectStatus:
            ensure_project_transition(current, target)

    @pytest.mark.parametrize("terminal", [ProjectStatus.completed, ProjectStatus.cancelled])
    def test_closed_project_is_final(self, terminal: ProjectStatus) -> None:
        """Test that completed and cancelled projects are archived."""
        with pytest.raises(AlreadyFinalError):
            ensure_project_transition(terminal, ProjectStatus.work_started)
