"""Project query functions for Teamescrow.

Provides async functions for inserting, reading, locking and deleting
Project records. Loading a project also loads its members, their tasks and
their payout records (selectin relationships), which is the graph every
budget computation works on.

These functions never open a transaction themselves; the caller owns it.
"""

from __future__ import annotations

from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from teamescrow.database.models.project import Project, ProjectStatus

logger = structlog.get_logger(__name__)


async def insert_project(session: AsyncSession, project: Project) -> Project:
    """Persist a new project and flush it so its ID is assigned."""
    session.add(project)
    await session.flush()

    logger.info(
        "project_inserted",
        project_id=str(project.id),
        client_id=str(project.client_id),
        budget=str(project.budget),
        status=project.status.value,
    )
    return project


async def get_project(
    session: AsyncSession,
    project_id: UUID,
) -> Project | None:
    """Retrieve a project by ID.

    Args:
        session: Active async database session.
        project_id: UUID of the project to retrieve.

    Returns:
        The Project instance if found, None otherwise.
    """
    stmt = (
        select(Project)
        .where(Project.id == project_id)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def lock_project(
    session: AsyncSession,
    project_id: UUID,
) -> Project | None:
    """Load a project with a row lock held until the transaction ends.

    On PostgreSQL this is ``SELECT ... FOR UPDATE``; SQLite ignores the
    locking clause and relies on its database-wide write lock.

    Args:
        session: Session with an open transaction.
        project_id: UUID of the project to lock.

    Returns:
        The freshly loaded Project, or None if it does not exist.
    """
    stmt = (
        select(Project)
        .where(Project.id == project_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_projects(
    session: AsyncSession,
    client_id: UUID | None = None,
    status_filter: ProjectStatus | None = None,
) -> list[Project]:
    """List projects with optional filters, newest first.

    Args:
        session: Active async database session.
        client_id: Optional owner to filter by.
        status_filter: Optional status to filter by.

    Returns:
        List of matching Project instances.
    """
    stmt = select(Project)

    if client_id is not None:
        stmt = stmt.where(Project.client_id == client_id)

    if status_filter is not None:
        stmt = stmt.where(Project.status == status_filter)

    stmt = stmt.order_by(Project.created_at.desc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def delete_project(session: AsyncSession, project: Project) -> None:
    """Delete a loaded project together with its members, tasks and payouts.

    Goes through the ORM so the relationship cascades apply on databases
    that do not enforce foreign keys.
    """
    await session.delete(project)
    await session.flush()

    logger.info("project_deleted", project_id=str(project.id))
