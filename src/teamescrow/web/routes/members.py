"""Team membership endpoints for Teamescrow.

Clients and admins add and remove members; invited freelancers answer
their own invitation.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field

from teamescrow.engine.actors import Actor
from teamescrow.engine.service import EscrowEngine
from teamescrow.logging import get_logger
from teamescrow.web.deps import get_actor, get_escrow
from teamescrow.web.schemas import MemberResponse

logger = get_logger(__name__)


class MemberCreate(BaseModel):
    """Request schema for inviting a freelancer into a role."""

    freelancer_id: UUID
    role: str = Field(..., min_length=1)


class InvitationAnswer(BaseModel):
    """Request schema for answering an invitation."""

    accept: bool


def create_members_router() -> APIRouter:
    """Create the team members router.

    Routes:
        POST /projects/{id}/members - Invite a freelancer
        DELETE /projects/{id}/members/{freelancer_id} - Remove a member
        POST /projects/{id}/invitation - Accept or decline an invitation
    """
    router = APIRouter(prefix="/projects/{project_id}", tags=["members"])

    @router.post("/members", response_model=MemberResponse, status_code=201)
    async def add_member_endpoint(
        project_id: UUID,
        member_data: MemberCreate,
        actor: Actor = Depends(get_actor),  # noqa: B008
        escrow: EscrowEngine = Depends(get_escrow),  # noqa: B008
    ) -> MemberResponse:
        member = await escrow.members.add_member(
            actor, project_id, member_data.freelancer_id, member_data.role
        )
        return MemberResponse.model_validate(member)

    @router.delete("/members/{freelancer_id}", status_code=204)
    async def remove_member_endpoint(
        project_id: UUID,
        freelancer_id: UUID,
        actor: Actor = Depends(get_actor),  # noqa: B008
        escrow: EscrowEngine = Depends(get_escrow),  # noqa: B008
    ) -> Response:
        await escrow.members.remove_member(actor, project_id, freelancer_id)
        return Response(status_code=204)

    @router.post("/invitation", response_model=MemberResponse)
    async def respond_endpoint(
        project_id: UUID,
        answer: InvitationAnswer,
        actor: Actor = Depends(get_actor),  # noqa: B008
        escrow: EscrowEngine = Depends(get_escrow),  # noqa: B008
    ) -> MemberResponse:
        member = await escrow.members.respond_to_invitation(actor, project_id, answer.accept)
        logger.info(
            "invitation_answered_via_api",
            project_id=str(project_id),
            accepted=answer.accept,
        )
        return MemberResponse.model_validate(member)

    return router
