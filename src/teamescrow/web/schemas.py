"""Response schemas shared by the Teamescrow routers.

All schemas read straight from the ORM objects the engine returns.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel

from teamescrow.database.models.member import MemberStatus, SelectedBy
from teamescrow.database.models.payout import PayoutStatus, PayoutType
from teamescrow.database.models.project import ProjectStatus, TeamSelectionType
from teamescrow.database.models.task import TaskStatus


class TaskResponse(BaseModel):
    """A task assigned to a team member."""

    id: UUID
    project_id: UUID
    member_id: UUID
    title: str | None
    description: str
    amount: Decimal
    payer_id: UUID | None
    due_date: datetime | None
    optional_link: str | None
    status: TaskStatus
    cancellation_reason: str | None
    cancellation_category: str | None
    rating: int | None
    review: str | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PayoutResponse(BaseModel):
    """A fixed payout or withdrawal request."""

    id: UUID
    project_id: UUID
    member_id: UUID
    freelancer_id: UUID
    amount: Decimal
    description: str
    payout_type: PayoutType
    status: PayoutStatus
    payment_method: str
    payment_details: str | None
    released_at: datetime | None
    cancelled_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class MemberResponse(BaseModel):
    """A team member with their tasks and payouts."""

    id: UUID
    project_id: UUID
    freelancer_id: UUID
    role: str
    status: MemberStatus
    selected_by: SelectedBy
    selected_at: datetime
    responded_at: datetime | None
    tasks: list[TaskResponse] = []
    payouts: list[PayoutResponse] = []

    model_config = {"from_attributes": True}


class ProjectResponse(BaseModel):
    """A team project and its members."""

    id: UUID
    client_id: UUID
    title: str
    description: str
    category: str
    budget: Decimal
    skills_required: list[str]
    team_size: int
    team_roles: list[dict[str, Any]]
    team_selection_type: TeamSelectionType
    status: ProjectStatus
    priority: str
    project_type: str
    start_date: datetime
    end_date: datetime
    estimated_duration_days: int
    additional_notes: str | None
    launched_at: datetime | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime
    members: list[MemberResponse] = []

    model_config = {"from_attributes": True}
