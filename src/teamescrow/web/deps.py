"""FastAPI dependencies shared by the Teamescrow routers."""

from __future__ import annotations

import uuid

from fastapi import Header, HTTPException, Request

from teamescrow.engine.actors import Actor, ActorRole
from teamescrow.engine.service import EscrowEngine
from teamescrow.logging import bind_actor_context, get_logger

logger = get_logger(__name__)


def get_escrow(request: Request) -> EscrowEngine:
    """Extract the escrow engine from FastAPI app state."""
    return request.app.state.escrow


def get_actor(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Actor:
    """Build the calling Actor from identity headers set by the gateway.

    Raises:
        HTTPException: 401 if the headers are missing, 400 if malformed.
    """
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=401, detail="X-User-Id and X-User-Role are required")
    try:
        user_id = uuid.UUID(x_user_id)
    except ValueError:
        logger.warning("invalid_actor_header", header="X-User-Id", value=x_user_id)
        raise HTTPException(status_code=400, detail=f"Invalid user id: {x_user_id}")
    try:
        role = ActorRole(x_user_role.lower())
    except ValueError:
        logger.warning("invalid_actor_header", header="X-User-Role", value=x_user_role)
        raise HTTPException(status_code=400, detail=f"Invalid user role: {x_user_role}")

    bind_actor_context(actor_id=str(user_id), role=role.value)
    return Actor(user_id=user_id, role=role)
