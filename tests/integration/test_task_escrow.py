"""Integration tests for tasks: budget reservation, state machine and refunds."""

from __future__ import annotations

from decimal import Decimal

import pytest

from teamescrow.database.models import ProjectStatus, TaskStatus
from teamescrow.database.models.user import UserType
from teamescrow.database.queries import users as user_queries
from teamescrow.engine import ProjectPatch
from teamescrow.errors import (
    AlreadyFinalError,
    InsufficientBudgetError,
    InvalidTransitionError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from teamescrow.integrations.notifications import NotificationEvent


async def _approve(escrow, team, task_id, rating=None):
    await escrow.tasks.transition(team.freelancer_actor(0), team.project_id, task_id, TaskStatus.in_progress)
    await escrow.tasks.transition(team.freelancer_actor(0), team.project_id, task_id, TaskStatus.submitted)
    return await escrow.tasks.transition(
        team.client_actor, team.project_id, task_id, TaskStatus.approved, rating=rating
    )


@pytest.mark.asyncio
async def test_create_task_reserves_budget(escrow, team, notifier):
    dev = team.freelancers[0]

    task = await escrow.tasks.create_task(
        team.client_actor,
        team.project_id,
        dev.id,
        "  Build the checkout API  ",
        amount="1200.50",
        title="Checkout",
    )

    assert task.status == TaskStatus.pending
    assert task.description == "Build the checkout API"
    assert task.amount == Decimal("1200.50")
    summary = await escrow.projects.budget_summary(team.project_id)
    assert summary.committed_tasks == Decimal("1200.50")
    assert summary.remaining == Decimal("3799.50")
    assert NotificationEvent.TASK_ASSIGNED in notifier.events(dev.id)


@pytest.mark.asyncio
async def test_zero_amount_task_allowed(escrow, team):
    task = await escrow.tasks.create_task(
        team.client_actor, team.project_id, team.freelancers[0].id, "Write docs"
    )

    assert task.amount == Decimal("0")


@pytest.mark.asyncio
async def test_task_over_remaining_budget_rejected(escrow, team):
    dev = team.freelancers[0]
    await escrow.tasks.create_task(team.client_actor, team.project_id, dev.id, "A", amount="4000")

    with pytest.raises(InsufficientBudgetError) as exc_info:
        await escrow.tasks.create_task(
            team.client_actor, team.project_id, dev.id, "B", amount="1000.01"
        )

    assert exc_info.value.remaining == Decimal("1000")
    assert exc_info.value.required == Decimal("1000.01")


@pytest.mark.asyncio
async def test_task_exactly_filling_budget_allowed(escrow, team):
    dev = team.freelancers[0]

    await escrow.tasks.create_task(team.client_actor, team.project_id, dev.id, "All in", amount="5000")

    summary = await escrow.projects.budget_summary(team.project_id)
    assert summary.remaining == Decimal("0")


@pytest.mark.asyncio
async def test_create_task_rejections(escrow, team, make_user, as_actor):
    stranger = await make_user("Stranger", UserType.freelancer)

    with pytest.raises(ValidationError):
        await escrow.tasks.create_task(team.client_actor, team.project_id, team.freelancers[0].id, " ")
    with pytest.raises(ValidationError):
        await escrow.tasks.create_task(
            team.client_actor, team.project_id, team.freelancers[0].id, "Neg", amount="-5"
        )
    with pytest.raises(NotFoundError):
        await escrow.tasks.create_task(team.client_actor, team.project_id, stranger.id, "Nope")
    with pytest.raises(UnauthorizedError):
        await escrow.tasks.create_task(
            team.freelancer_actor(0), team.project_id, team.freelancers[0].id, "Self assigned"
        )


@pytest.mark.asyncio
async def test_task_requires_accepted_member(escrow, team, make_user, as_actor):
    await escrow.projects.update_project(
        team.client_actor, team.project_id, ProjectPatch(team_size=3)
    )
    pending = await make_user("Pending dev", UserType.freelancer)
    await escrow.members.add_member(
        team.client_actor, team.project_id, pending.id, "Backend Developer"
    )

    with pytest.raises(InvalidTransitionError):
        await escrow.tasks.create_task(team.client_actor, team.project_id, pending.id, "Too early")


@pytest.mark.asyncio
async def test_task_on_closed_project_rejected(escrow, team):
    await escrow.projects.update_status(team.client_actor, team.project_id, ProjectStatus.cancelled)

    with pytest.raises(InvalidTransitionError):
        await escrow.tasks.create_task(
            team.client_actor, team.project_id, team.freelancers[0].id, "Late"
        )


@pytest.mark.asyncio
async def test_full_task_lifecycle_with_revision(escrow, team, session_factory, notifier):
    """pending -> in_progress -> submitted -> revision -> submitted -> approved."""
    dev = team.freelancers[0]
    task = await escrow.tasks.create_task(team.client_actor, team.project_id, dev.id, "API", amount="800")

    for actor, status in [
        (team.freelancer_actor(0), TaskStatus.in_progress),
        (team.freelancer_actor(0), TaskStatus.submitted),
        (team.client_actor, TaskStatus.revision),
        (team.freelancer_actor(0), TaskStatus.submitted),
    ]:
        task = await escrow.tasks.transition(actor, team.project_id, task.id, status)
        assert task.status == status

    approved = await escrow.tasks.transition(
        team.client_actor, team.project_id, task.id, TaskStatus.approved, rating=4, review="Solid"
    )

    assert approved.status == TaskStatus.approved
    assert approved.rating == 4
    assert approved.review == "Solid"
    assert approved.completed_at is not None
    async with session_factory() as session:
        profile = await user_queries.get_user(session, dev.id)
    assert profile.rating == 4.0
    assert profile.completed_projects == 1

    assert NotificationEvent.TASK_SUBMITTED in notifier.events(team.client.id)
    assert NotificationEvent.TASK_REVISION in notifier.events(dev.id)
    assert NotificationEvent.TASK_APPROVED in notifier.events(dev.id)

    summary = await escrow.projects.budget_summary(team.project_id)
    assert summary.committed_tasks == Decimal("800")
    earnings = {m.freelancer_id: m for m in summary.members}
    assert earnings[dev.id].approved == Decimal("800")
    assert earnings[dev.id].available == Decimal("800")


@pytest.mark.asyncio
async def test_default_rating_folds_into_running_mean(escrow, team, session_factory):
    dev = team.freelancers[0]
    first = await escrow.tasks.create_task(team.client_actor, team.project_id, dev.id, "One")
    second = await escrow.tasks.create_task(team.client_actor, team.project_id, dev.id, "Two")

    await _approve(escrow, team, first.id, rating=3)
    await _approve(escrow, team, second.id)

    async with session_factory() as session:
        profile = await user_queries.get_user(session, dev.id)
    assert profile.completed_projects == 2
    assert profile.rating == pytest.approx(4.0)


@pytest.mark.asyncio
async def test_rating_out_of_range_rejected(escrow, team):
    task = await escrow.tasks.create_task(
        team.client_actor, team.project_id, team.freelancers[0].id, "API"
    )

    with pytest.raises(ValidationError):
        await escrow.tasks.transition(
            team.client_actor, team.project_id, task.id, TaskStatus.approved, rating=6
        )


@pytest.mark.asyncio
async def test_role_checks_on_transitions(escrow, team):
    """Only the assignee works the task; only the client or an admin reviews it."""
    task = await escrow.tasks.create_task(
        team.client_actor, team.project_id, team.freelancers[0].id, "API"
    )

    with pytest.raises(UnauthorizedError):
        await escrow.tasks.transition(
            team.client_actor, team.project_id, task.id, TaskStatus.in_progress
        )
    with pytest.raises(UnauthorizedError):
        await escrow.tasks.transition(
            team.freelancer_actor(1), team.project_id, task.id, TaskStatus.in_progress
        )
    with pytest.raises(UnauthorizedError):
        await escrow.tasks.transition(
            team.freelancer_actor(0), team.project_id, task.id, TaskStatus.cancelled
        )


@pytest.mark.asyncio
async def test_illegal_task_moves(escrow, team):
    task = await escrow.tasks.create_task(
        team.client_actor, team.project_id, team.freelancers[0].id, "API"
    )

    with pytest.raises(InvalidTransitionError):
        await escrow.tasks.transition(
            team.client_actor, team.project_id, task.id, TaskStatus.approved
        )

    await _approve(escrow, team, task.id)
    with pytest.raises(AlreadyFinalError):
        await escrow.tasks.transition(
            team.client_actor, team.project_id, task.id, TaskStatus.cancelled
        )


@pytest.mark.asyncio
async def test_cancel_refunds_client_and_shrinks_budget(escrow, team, balance_of, notifier):
    """A cancelled task returns its amount untaxed and leaves the budget."""
    dev = team.freelancers[0]
    task = await escrow.tasks.create_task(
        team.client_actor, team.project_id, dev.id, "API", amount="1500"
    )

    cancelled = await escrow.tasks.transition(
        team.client_actor,
        team.project_id,
        task.id,
        TaskStatus.cancelled,
        cancellation_reason="Scope cut",
        cancellation_category="scope",
    )

    assert cancelled.cancellation_reason == "Scope cut"
    assert cancelled.cancellation_category == "scope"
    assert await balance_of(team.client.id) == Decimal("6500")
    summary = await escrow.projects.budget_summary(team.project_id)
    assert summary.budget == Decimal("3500")
    assert summary.committed == Decimal("0")
    assert NotificationEvent.TASK_CANCELLED in notifier.events(dev.id)
    assert NotificationEvent.REFUND_ISSUED in notifier.events(team.client.id)


@pytest.mark.asyncio
async def test_admin_created_task_refunds_the_client(escrow, team, as_actor, balance_of):
    """The client's escrow funds every task, so only the client gets it back."""
    admin = as_actor(team.admin)
    task = await escrow.tasks.create_task(
        admin, team.project_id, team.freelancers[0].id, "Sponsored", amount="250"
    )
    assert task.payer_id == team.client.id

    await escrow.tasks.transition(admin, team.project_id, task.id, TaskStatus.cancelled)

    assert await balance_of(team.client.id) == Decimal("5250")
    assert await balance_of(team.admin.id) == Decimal("0")
    assert await balance_of(team.freelancers[0].id) == Decimal("0")


@pytest.mark.asyncio
async def test_unfunded_task_cancels_without_refund(escrow, team, balance_of):
    dev = team.freelancer_actor(0)
    task = await escrow.tasks.create_task(
        team.client_actor, team.project_id, dev.user_id, "Pair on review"
    )
    assert task.payer_id is None
    await escrow.tasks.transition(dev, team.project_id, task.id, TaskStatus.in_progress)

    cancelled = await escrow.tasks.transition(
        team.client_actor, team.project_id, task.id, TaskStatus.cancelled
    )

    assert cancelled.status == TaskStatus.cancelled
    assert await balance_of(team.client.id) == Decimal("5000")
    summary = await escrow.projects.budget_summary(team.project_id)
    assert summary.budget == Decimal("5000")


@pytest.mark.asyncio
async def test_task_from_another_project_not_found(escrow, team, make_user, as_actor, draft):
    other_client = await make_user("Other", UserType.client, "5000")
    other = await escrow.projects.create_project(as_actor(other_client), draft())
    task = await escrow.tasks.create_task(
        team.client_actor, team.project_id, team.freelancers[0].id, "API"
    )

    with pytest.raises(NotFoundError):
        await escrow.tasks.transition(
            as_actor(other_client), other.id, task.id, TaskStatus.cancelled
        )
