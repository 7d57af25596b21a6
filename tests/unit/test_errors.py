"""Unit tests for the engine error taxonomy."""

from __future__ import annotations

import uuid
from decimal import Decimal

from teamescrow.errors import (
    AlreadyFinalError,
    EscrowError,
    IncompleteTasksError,
    InsufficientBalanceError,
    InsufficientBudgetError,
    InvalidTransitionError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)


class TestErrorCodes:
    """Test codes and HTTP statuses carried by each error."""

    def test_codes_and_statuses(self) -> None:
        """Test that every error maps to a stable code and status."""
        cases = [
            (ValidationError("bad"), "VALIDATION_ERROR", 400),
            (InsufficientBalanceError(uuid.uuid4(), Decimal("1"), Decimal("2")), "INSUFFICIENT_BALANCE", 400),
            (InsufficientBudgetError(uuid.uuid4(), Decimal("1"), Decimal("2")), "INSUFFICIENT_BUDGET", 400),
            (UnauthorizedError("no"), "UNAUTHORIZED", 403),
            (NotFoundError("project", "P-1"), "NOT_FOUND", 404),
            (InvalidTransitionError("task", "pending", "approved"), "INVALID_STATE_TRANSITION", 409),
            (AlreadyFinalError("payout", "released", "cancelled"), "ALREADY_FINAL", 409),
            (IncompleteTasksError([uuid.uuid4()]), "INCOMPLETE_TASKS", 409),
        ]
        for error, code, status in cases:
            assert isinstance(error, EscrowError)
            assert error.code == code
            assert error.http_status == status

    def test_monetary_errors_are_not_authorization_errors(self) -> None:
        """Test that money failures and permission failures stay distinct."""
        error = InsufficientBalanceError(uuid.uuid4(), Decimal("1"), Decimal("2"))
        assert not isinstance(error, UnauthorizedError)
        assert not isinstance(InsufficientBudgetError(uuid.uuid4(), Decimal("0"), Decimal("1")), InsufficientBalanceError)

    def test_already_final_is_an_invalid_transition(self) -> None:
        """Test that repeat actions can be caught as invalid transitions."""
        error = AlreadyFinalError("task", "approved", "cancelled", "T-9")
        assert isinstance(error, InvalidTransitionError)
        assert str(error) == "Task is already approved"


class TestErrorBodies:
    """Test the JSON bodies built from errors."""

    def test_insufficient_balance_body(self) -> None:
        """Test that the balance error exposes both amounts."""
        error = InsufficientBalanceError(uuid.uuid4(), Decimal("1500"), Decimal("2000"))

        body = error.to_dict()

        assert body["error_code"] == "INSUFFICIENT_BALANCE"
        assert body["current_balance"] == "1500"
        assert body["required_amount"] == "2000"
        assert "Please add funds" in body["message"]

    def test_invalid_transition_body(self) -> None:
        error = InvalidTransitionError("task", "pending", "approved", "T-1")

        assert error.to_dict() == {
            "error_code": "INVALID_STATE_TRANSITION",
            "message": "Invalid task transition from pending to approved for task T-1",
            "current": "pending",
            "target": "approved",
        }

    def test_incomplete_tasks_body(self) -> None:
        """Test that open task IDs are listed as strings."""
        task_id = uuid.uuid4()

        body = IncompleteTasksError([task_id]).to_dict()

        assert body["open_task_ids"] == [str(task_id)]

    def test_not_found_body(self) -> None:
        body = NotFoundError("payout", "X-1").to_dict()

        assert body["message"] == "payout X-1 not found"
        assert body["entity"] == "payout"
        assert body["entity_id"] == "X-1"
