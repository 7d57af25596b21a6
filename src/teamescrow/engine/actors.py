"""Callers of engine operations and their authorization rules.

Authentication is handled upstream; the engine receives an already
identified Actor and only decides what that actor may do to a project.
"""

from __future__ import annotations

import uuid
from enum import Enum

from pydantic import BaseModel, ConfigDict

from teamescrow.database.models.project import Project
from teamescrow.errors import UnauthorizedError


class ActorRole(str, Enum):
    """Platform role of the caller."""

    ADMIN = "admin"
    CLIENT = "client"
    FREELANCER = "freelancer"


class Actor(BaseModel):
    """An authenticated caller.

    Attributes:
        user_id: Identity of the caller.
        role: Platform role of the caller.
    """

    model_config = ConfigDict(frozen=True)

    user_id: uuid.UUID
    role: ActorRole

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN

    def owns(self, project: Project) -> bool:
        return self.user_id == project.client_id


def require_owner_or_admin(project: Project, actor: Actor, action: str) -> None:
    """Only the project's client or a platform admin may perform ``action``."""
    if not (actor.is_admin or actor.owns(project)):
        raise UnauthorizedError(f"Only the project client or an admin can {action}")


def require_admin(actor: Actor, action: str) -> None:
    if not actor.is_admin:
        raise UnauthorizedError(f"Only an admin can {action}")
