"""Initial schema for Teamescrow.

Creates the user directory tables (users, balance_logs) and the escrow
tables (projects, team_members, project_tasks, payout_records).

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ENUMS = {
    "user_type": ("client", "freelancer", "admin"),
    "account_status": ("active", "suspended", "banned"),
    "availability": ("online", "offline", "busy", "on_vacation"),
    "project_status": (
        "not_started", "started", "team_selection", "work_started",
        "on_hold", "completed", "cancelled",
    ),
    "team_selection_type": ("manual", "auto", "mixed"),
    "member_status": ("checking", "accepted", "not_accepted"),
    "selected_by": ("client", "admin", "auto"),
    "task_status": ("pending", "in_progress", "submitted", "revision", "approved", "cancelled"),
    "payout_type": ("fixed", "withdrawal"),
    "payout_status": ("locked", "released", "cancelled"),
}

MONEY = sa.Numeric(14, 2)


def _enum(name: str) -> sa.Enum:
    return sa.Enum(*ENUMS[name], name=name, create_type=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in ENUMS.items():
        sa.Enum(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("display_name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("user_type", _enum("user_type"), nullable=False, server_default="client"),
        sa.Column("account_status", _enum("account_status"), nullable=False, server_default="active"),
        sa.Column("balance", MONEY, nullable=False, server_default="0"),
        sa.Column("skills", JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("rating", sa.Float(), nullable=False, server_default="0"),
        sa.Column("completed_projects", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("availability", _enum("availability"), nullable=False, server_default="offline"),
        *_timestamps(),
        sa.CheckConstraint("balance >= 0", name="ck_users_balance_non_negative"),
    )

    op.create_table(
        "balance_logs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("balance_after", MONEY, nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_balance_logs_user_id", "balance_logs", ["user_id"])

    op.create_table(
        "projects",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("client_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("budget", MONEY, nullable=False),
        sa.Column("skills_required", JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("team_size", sa.Integer(), nullable=False),
        sa.Column("team_roles", JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column(
            "team_selection_type",
            _enum("team_selection_type"),
            nullable=False,
            server_default="mixed",
        ),
        sa.Column("status", _enum("project_status"), nullable=False, server_default="not_started"),
        sa.Column("priority", sa.Text(), nullable=False, server_default="medium"),
        sa.Column("project_type", sa.Text(), nullable=False, server_default="one-time"),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("estimated_duration_days", sa.Integer(), nullable=False),
        sa.Column("additional_notes", sa.Text(), nullable=True),
        sa.Column("launched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_projects_client_id", "projects", ["client_id"])

    op.create_table(
        "team_members",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "project_id",
            sa.Uuid(),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("freelancer_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("role", sa.Text(), nullable=False),
        sa.Column("status", _enum("member_status"), nullable=False, server_default="checking"),
        sa.Column("selected_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("selected_by", _enum("selected_by"), nullable=False, server_default="client"),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("project_id", "freelancer_id", name="uq_team_member_freelancer"),
    )
    op.create_index("ix_team_members_project_id", "team_members", ["project_id"])
    op.create_index("ix_team_members_freelancer_id", "team_members", ["freelancer_id"])

    op.create_table(
        "project_tasks",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "project_id",
            sa.Uuid(),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "member_id",
            sa.Uuid(),
            sa.ForeignKey("team_members.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("amount", MONEY, nullable=False, server_default="0"),
        sa.Column("payer_id", sa.Uuid(), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("optional_link", sa.Text(), nullable=True),
        sa.Column("status", _enum("task_status"), nullable=False, server_default="pending"),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("cancellation_category", sa.Text(), nullable=True),
        sa.Column("rating", sa.Integer(), nullable=True),
        sa.Column("review", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_project_tasks_project_id", "project_tasks", ["project_id"])
    op.create_index("ix_project_tasks_member_id", "project_tasks", ["member_id"])

    op.create_table(
        "payout_records",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "project_id",
            sa.Uuid(),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "member_id",
            sa.Uuid(),
            sa.ForeignKey("team_members.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("freelancer_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("payout_type", _enum("payout_type"), nullable=False, server_default="fixed"),
        sa.Column("status", _enum("payout_status"), nullable=False, server_default="locked"),
        sa.Column("payment_method", sa.Text(), nullable=False, server_default="Wallet"),
        sa.Column("payment_details", sa.Text(), nullable=True),
        sa.Column("released_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_payout_records_project_id", "payout_records", ["project_id"])
    op.create_index("ix_payout_records_member_id", "payout_records", ["member_id"])
    # Drives the release sweep: locked payouts ordered by age
    op.create_index(
        "ix_payout_records_status_created_at",
        "payout_records",
        ["status", "created_at"],
    )


def downgrade() -> None:
    op.drop_table("payout_records")
    op.drop_table("project_tasks")
    op.drop_table("team_members")
    op.drop_table("projects")
    op.drop_table("balance_logs")
    op.drop_table("users")

    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        sa.Enum(name=name).drop(bind, checkfirst=True)
