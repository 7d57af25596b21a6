"""Lookups inside a loaded project graph.

Members, tasks and payouts are always reached through their locked project,
so a lookup that crosses projects fails as not found.
"""

from __future__ import annotations

import uuid

from teamescrow.database.models.member import TeamMember
from teamescrow.database.models.payout import PayoutRecord
from teamescrow.database.models.project import Project
from teamescrow.database.models.task import Task
from teamescrow.errors import NotFoundError


def get_member(project: Project, freelancer_id: uuid.UUID) -> TeamMember:
    member = project.find_member(freelancer_id)
    if member is None:
        raise NotFoundError("member", freelancer_id)
    return member


def get_task(project: Project, task_id: uuid.UUID) -> tuple[TeamMember, Task]:
    for member in project.members:
        for task in member.tasks:
            if task.id == task_id:
                return member, task
    raise NotFoundError("task", task_id)


def get_payout(project: Project, payout_id: uuid.UUID) -> tuple[TeamMember, PayoutRecord]:
    for member in project.members:
        for payout in member.payouts:
            if payout.id == payout_id:
                return member, payout
    raise NotFoundError("payout", payout_id)
