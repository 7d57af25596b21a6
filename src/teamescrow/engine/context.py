"""Shared wiring and the per-project unit of work used by every service."""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from teamescrow.config import EscrowConfig, RecruitmentConfig
from teamescrow.database.models.project import Project
from teamescrow.database.queries.projects import lock_project
from teamescrow.engine.locks import ProjectLocks
from teamescrow.errors import NotFoundError
from teamescrow.integrations.directory import UserDirectory
from teamescrow.integrations.notifications import Notifier, Outbox


@dataclass
class EngineContext:
    """Collaborators and settings shared by the engine services."""

    session_factory: async_sessionmaker[AsyncSession]
    directory: UserDirectory
    notifier: Notifier
    escrow: EscrowConfig = field(default_factory=EscrowConfig)
    recruitment: RecruitmentConfig = field(default_factory=RecruitmentConfig)
    locks: ProjectLocks = field(default_factory=ProjectLocks)


@dataclass
class ProjectUnitOfWork:
    """An open transaction holding a locked, fully loaded project."""

    session: AsyncSession
    project: Project
    outbox: Outbox


@asynccontextmanager
async def project_transaction(
    ctx: EngineContext,
    project_id: uuid.UUID,
) -> AsyncIterator[ProjectUnitOfWork]:
    """Run a block as the single writer of ``project_id``.

    Takes the in-process project lock, opens a transaction, re-reads the
    project graph with a row lock and yields it. The transaction commits
    when the block exits normally and rolls back if it raises. Queued
    notifications are delivered only after a successful commit.

    Raises:
        NotFoundError: If the project does not exist.
    """
    outbox = Outbox()
    async with ctx.locks.hold(project_id):
        async with ctx.session_factory() as session:
            async with session.begin():
                project = await lock_project(session, project_id)
                if project is None:
                    raise NotFoundError("project", project_id)
                with structlog.contextvars.bound_contextvars(project_id=str(project_id)):
                    yield ProjectUnitOfWork(session=session, project=project, outbox=outbox)
    await outbox.flush(ctx.notifier)
