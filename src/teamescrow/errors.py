"""Error taxonomy for the escrow engine.

Every failure an engine operation can report derives from ``EscrowError``
and carries a stable ``code`` plus the HTTP status the web layer answers
with. Monetary failures (``InsufficientBalanceError``,
``InsufficientBudgetError``) are kept distinct from authorization failures
so that clients can tell "add funds" apart from "not allowed".
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any


class EscrowError(Exception):
    """Base class for all engine errors.

    Attributes:
        code: Machine-readable error code.
        http_status: HTTP status code used by the web layer.
        message: Human-readable description.
    """

    code = "ESCROW_ERROR"
    http_status = 400

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def details(self) -> dict[str, Any]:
        """Extra fields included in error responses."""
        return {}

    def to_dict(self) -> dict[str, Any]:
        return {"error_code": self.code, "message": self.message, **self.details()}


class ValidationError(EscrowError):
    """Malformed or missing input: required fields, minimum budget, date order."""

    code = "VALIDATION_ERROR"
    http_status = 400


class InsufficientBalanceError(EscrowError):
    """A user's spendable balance is too low for a debit.

    Attributes:
        user_id: User whose balance was checked.
        current_balance: Balance at the time of the check.
        required_amount: Amount the debit needed.
    """

    code = "INSUFFICIENT_BALANCE"
    http_status = 400

    def __init__(
        self,
        user_id: Any,
        current_balance: Decimal,
        required_amount: Decimal,
    ) -> None:
        self.user_id = user_id
        self.current_balance = current_balance
        self.required_amount = required_amount
        super().__init__(
            f"Insufficient balance. You have {current_balance} but need "
            f"{required_amount}. Please add funds to your account."
        )

    def details(self) -> dict[str, Any]:
        return {
            "current_balance": str(self.current_balance),
            "required_amount": str(self.required_amount),
        }


class InsufficientBudgetError(EscrowError):
    """A reservation would push a project's committed amount over its budget.

    Attributes:
        project_id: Project whose budget was checked.
        remaining: Budget minus committed amount.
        required: Amount the reservation needed.
    """

    code = "INSUFFICIENT_BUDGET"
    http_status = 400

    def __init__(self, project_id: Any, remaining: Decimal, required: Decimal) -> None:
        self.project_id = project_id
        self.remaining = remaining
        self.required = required
        super().__init__(
            f"Insufficient project budget. Remaining: {remaining}, Required: {required}"
        )

    def details(self) -> dict[str, Any]:
        return {"remaining": str(self.remaining), "required": str(self.required)}


class UnauthorizedError(EscrowError):
    """The caller lacks the role required for the operation."""

    code = "UNAUTHORIZED"
    http_status = 403


class NotFoundError(EscrowError):
    """A project, member, task, payout or user does not exist.

    Attributes:
        entity: Kind of entity that was looked up.
        entity_id: Identifier that was not found.
    """

    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, entity: str, entity_id: Any) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")

    def details(self) -> dict[str, Any]:
        return {"entity": self.entity, "entity_id": str(self.entity_id)}


class InvalidTransitionError(EscrowError):
    """An illegal state machine move was attempted.

    Attributes:
        entity: Kind of entity (task, payout, project, member).
        current: Current status value.
        target: Attempted target status value.
        entity_id: Identifier of the entity, if known.
    """

    code = "INVALID_STATE_TRANSITION"
    http_status = 409

    def __init__(
        self,
        entity: str,
        current: str,
        target: str,
        entity_id: Any | None = None,
    ) -> None:
        self.entity = entity
        self.current = current
        self.target = target
        self.entity_id = entity_id
        msg = f"Invalid {entity} transition from {current} to {target}"
        if entity_id is not None:
            msg += f" for {entity} {entity_id}"
        super().__init__(msg)

    def details(self) -> dict[str, Any]:
        return {"current": self.current, "target": self.target}


class AlreadyFinalError(InvalidTransitionError):
    """A repeat action on an entity that already reached a terminal state."""

    code = "ALREADY_FINAL"

    def __init__(
        self,
        entity: str,
        current: str,
        target: str,
        entity_id: Any | None = None,
    ) -> None:
        super().__init__(entity, current, target, entity_id)
        self.message = f"{entity.capitalize()} is already {current}"
        self.args = (self.message,)


class IncompleteTasksError(EscrowError):
    """A status change requires every task to be terminal, and some are not.

    Attributes:
        open_task_ids: Identifiers of the tasks still in progress.
    """

    code = "INCOMPLETE_TASKS"
    http_status = 409

    def __init__(self, open_task_ids: list[Any]) -> None:
        self.open_task_ids = open_task_ids
        super().__init__(
            "Some tasks are still pending. Approve or cancel them before "
            "completing or pausing the project."
        )

    def details(self) -> dict[str, Any]:
        return {"open_task_ids": [str(t) for t in self.open_task_ids]}
